"""
HTML report for the workshop: narrative text, tables and inline figures
in a single self-contained file.
"""
import base64
import html
import io
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
import matplotlib.pyplot as plt


_STYLE = """
body { font-family: sans-serif; max-width: 960px; margin: 2em auto; color: #222; }
h1 { border-bottom: 2px solid #444; }
table.dataframe { border-collapse: collapse; margin: 1em 0; }
table.dataframe th, table.dataframe td { border: 1px solid #ccc; padding: 4px 8px; text-align: right; }
figure { margin: 1.5em 0; }
figcaption { font-style: italic; color: #555; }
pre { background: #f5f5f5; padding: 0.8em; overflow-x: auto; }
"""


class WorkshopReport:
    """Accumulates report sections and renders them as HTML."""

    def __init__(self, title: str = 'Bayesian regression workshop'):
        self.title = title
        self.sections: List[str] = []

    def add_heading(self, text: str, level: int = 2):
        level = min(max(level, 1), 6)
        self.sections.append(f"<h{level}>{html.escape(text)}</h{level}>")

    def add_text(self, text: str):
        for paragraph in text.strip().split('\n\n'):
            self.sections.append(f"<p>{html.escape(paragraph.strip())}</p>")

    def add_code(self, text: str):
        self.sections.append(f"<pre>{html.escape(text)}</pre>")

    def add_table(self, df: pd.DataFrame, float_format: str = '{:.2f}', caption: Optional[str] = None):
        table = df.to_html(float_format=float_format.format, border=0, na_rep='-')
        if caption:
            self.sections.append(f"<p><strong>{html.escape(caption)}</strong></p>")
        self.sections.append(table)

    def add_figure(self, fig: plt.Figure, caption: Optional[str] = None, close: bool = True):
        """Embed a figure as a base64 PNG."""
        buffer = io.BytesIO()
        fig.savefig(buffer, format='png', dpi=100, bbox_inches='tight')
        if close:
            plt.close(fig)
        encoded = base64.b64encode(buffer.getvalue()).decode('ascii')

        parts = [f'<figure><img src="data:image/png;base64,{encoded}" alt="figure"/>']
        if caption:
            parts.append(f"<figcaption>{html.escape(caption)}</figcaption>")
        parts.append("</figure>")
        self.sections.append(''.join(parts))

    def render(self) -> str:
        generated = datetime.now().strftime('%Y-%m-%d %H:%M')
        body = '\n'.join(self.sections)
        return (
            "<!DOCTYPE html>\n"
            "<html>\n<head>\n<meta charset=\"utf-8\"/>\n"
            f"<title>{html.escape(self.title)}</title>\n"
            f"<style>{_STYLE}</style>\n</head>\n<body>\n"
            f"<h1>{html.escape(self.title)}</h1>\n"
            f"<p><em>Generated {generated}</em></p>\n"
            f"{body}\n</body>\n</html>\n"
        )

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(), encoding='utf-8')
        print(f"[Report] Written to {path}")
        return path
