"""
Reaction-time data loading utilities for the sleep-deprivation workshop.

Supports:
- CSV/TSV files with one row per subject and day
- In-memory pandas DataFrames

Example CSV format:
    Subject,Days,Reaction
    308,0,249.56
    308,1,258.70
    308,2,250.80
    ...

Column names can differ from the canonical ``Subject, Days, Reaction``;
pass the actual names to the loader and they are renamed on load.
"""
import numpy as np
import pandas as pd
from scipy import stats
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional, Union
import warnings


CANONICAL_COLUMNS = ['Subject', 'Days', 'Reaction']


@dataclass
class SleepStudyData:
    """Validated reaction-time observations."""
    frame: pd.DataFrame
    source: Optional[Path] = None

    @property
    def n_observations(self) -> int:
        return len(self.frame)

    @property
    def n_subjects(self) -> int:
        return int(self.frame['Subject'].nunique())

    @property
    def subjects(self) -> List[str]:
        return sorted(self.frame['Subject'].unique().tolist())

    @property
    def days(self) -> np.ndarray:
        return self.frame['Days'].to_numpy(dtype=np.float64)

    @property
    def reaction(self) -> np.ndarray:
        return self.frame['Reaction'].to_numpy(dtype=np.float64)


class SleepStudyLoader:
    """Load and validate reaction-time data."""

    def __init__(self, data_dir: str = 'data'):
        """
        Args:
            data_dir: Directory containing data files
        """
        self.data_dir = Path(data_dir)
        if not self.data_dir.exists():
            warnings.warn(f"Data directory does not exist: {self.data_dir}")

    def load_csv(self, filename: str,
                 subject_col: str = 'Subject',
                 day_col: str = 'Days',
                 reaction_col: str = 'Reaction',
                 delimiter: str = ',',
                 min_day: Optional[int] = None) -> SleepStudyData:
        """Load reaction-time observations from CSV.

        Args:
            filename: Filename relative to data_dir, or absolute path.
            subject_col: Name of the subject identifier column.
            day_col: Name of the day-of-deprivation column.
            reaction_col: Name of the reaction time column (ms).
            delimiter: Column delimiter (',', '\\t', ';', etc.).
            min_day: If given, drop observations before this day. The classic
                analysis treats days 0-1 as adaptation and starts at day 2.

        Returns:
            SleepStudyData with canonical columns Subject, Days, Reaction
        """
        filepath = self.data_dir / filename if not Path(filename).is_absolute() else Path(filename)

        if not filepath.exists():
            raise FileNotFoundError(f"Reaction-time file not found: {filepath}")

        _engine = 'python' if len(delimiter) > 1 else 'c'
        df = pd.read_csv(filepath, sep=delimiter, engine=_engine)

        data = self.from_frame(df, subject_col=subject_col, day_col=day_col,
                               reaction_col=reaction_col, min_day=min_day)
        data.source = filepath

        print(f"[Data] Loaded {data.n_observations} observations "
              f"from {data.n_subjects} subjects ({filepath.name})")
        print(f"  Days: {int(data.days.min())} - {int(data.days.max())}")
        print(f"  Reaction range: {data.reaction.min():.1f} - {data.reaction.max():.1f} ms")

        return data

    @staticmethod
    def from_frame(df: pd.DataFrame,
                   subject_col: str = 'Subject',
                   day_col: str = 'Days',
                   reaction_col: str = 'Reaction',
                   min_day: Optional[int] = None) -> SleepStudyData:
        """Validate an in-memory DataFrame and return SleepStudyData."""
        missing = [c for c in (subject_col, day_col, reaction_col) if c not in df.columns]
        if missing:
            raise ValueError(f"Required column(s) not found: {missing}")

        frame = df[[subject_col, day_col, reaction_col]].copy()
        frame.columns = CANONICAL_COLUMNS

        n_before = len(frame)
        frame = frame.dropna()
        if len(frame) < n_before:
            warnings.warn(f"Dropped {n_before - len(frame)} row(s) with missing values")

        try:
            frame['Days'] = pd.to_numeric(frame['Days'])
            frame['Reaction'] = pd.to_numeric(frame['Reaction']).astype(np.float64)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Days and Reaction must be numeric: {e}") from e

        if not (np.isfinite(frame['Days']).all() and np.isfinite(frame['Reaction']).all()):
            raise ValueError("Days and Reaction must be finite")

        if not np.allclose(frame['Days'], np.round(frame['Days'])):
            raise ValueError("Days must be whole numbers")
        frame['Days'] = frame['Days'].round().astype(int)

        if (frame['Days'] < 0).any():
            raise ValueError("Days must be non-negative")
        if (frame['Reaction'] <= 0).any():
            raise ValueError("Reaction times must be positive")

        frame['Subject'] = frame['Subject'].astype(str)

        if min_day is not None:
            frame = frame[frame['Days'] >= min_day]

        if frame.empty:
            raise ValueError("No observations left after validation")

        frame = frame.sort_values(['Subject', 'Days'], kind='mergesort').reset_index(drop=True)
        return SleepStudyData(frame=frame)


def summarize_by_day(data: SleepStudyData) -> pd.DataFrame:
    """Descriptive statistics of reaction time for each day."""
    grouped = data.frame.groupby('Days')['Reaction']
    summary = grouped.agg(['count', 'mean', 'std', 'min', 'max'])
    summary.columns = ['n', 'mean', 'sd', 'min', 'max']
    return summary


def subject_slopes(data: SleepStudyData) -> pd.DataFrame:
    """Per-subject least-squares fits (no pooling).

    Subjects observed on a single day get NaN slope and their mean as
    intercept.
    """
    rows = []
    for subject, group in data.frame.groupby('Subject', sort=True):
        x = group['Days'].to_numpy(dtype=np.float64)
        y = group['Reaction'].to_numpy(dtype=np.float64)
        if np.unique(x).size < 2:
            intercept, slope = float(y.mean()), np.nan
        else:
            fit = stats.linregress(x, y)
            intercept, slope = fit.intercept, fit.slope
        rows.append({'Subject': subject,
                     'n': len(group),
                     'intercept': float(intercept),
                     'slope': float(slope)})
    return pd.DataFrame(rows).set_index('Subject')


def create_sample_sleepstudy_data(output_dir: Union[str, Path] = 'data',
                                  filename: str = 'sleepstudy.csv',
                                  n_subjects: int = 18,
                                  n_days: int = 10,
                                  seed: int = 42) -> Path:
    """Create a synthetic reaction-time dataset for the workshop.

    Subjects get their own baseline and slope drawn around the population
    values reported for the classic sleep deprivation study (baseline
    ~251 ms, ~10.5 ms slower per day, residual sd ~25.6 ms).

    Args:
        output_dir: Output directory
        filename: CSV filename
        n_subjects: Number of subjects
        n_days: Days per subject (0 .. n_days-1)
        seed: Random seed

    Returns:
        Path of the written CSV file
    """
    if n_subjects < 1 or n_days < 1:
        raise ValueError("n_subjects and n_days must be positive")

    rng = np.random.default_rng(seed)
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    intercepts = rng.normal(251.4, 24.7, n_subjects)
    slopes = rng.normal(10.5, 5.9, n_subjects)
    days = np.arange(n_days)

    rows = []
    for i in range(n_subjects):
        reaction = intercepts[i] + slopes[i] * days + rng.normal(0.0, 25.6, n_days)
        # Keep reaction times physically plausible
        reaction = np.clip(reaction, 50.0, None)
        for d, r in zip(days, reaction):
            rows.append({'Subject': str(308 + i), 'Days': int(d), 'Reaction': round(float(r), 4)})

    csv_file = output_path / filename
    pd.DataFrame(rows, columns=CANONICAL_COLUMNS).to_csv(csv_file, index=False)

    print(f"[Data] Created sample dataset: {csv_file}")
    print(f"  Subjects: {n_subjects}, days per subject: {n_days}")
    return csv_file
