"""
Sleepstudy Bayes — Fitted Model Cache
=====================================
Disk cache for fitted models so that re-running the workshop does not
re-sample chains that have not changed.

Problem: each MCMC fit takes tens of seconds to minutes; the workshop fits
several models and is re-run many times while the narrative is edited.
Solution: store each fit as a netCDF artifact under a file path chosen by the
user, together with a signature of the priors, sampler settings and data.

Features:
- File-path keyed artifacts (``fits/fit_default`` -> ``fits/fit_default.nc``)
- Refit policies: 'never', 'on_change', 'always'
- LRU eviction when the cache exceeds its size limit
- Hit/miss statistics tracking

Usage:
    from sleepstudy_bayes.fit_cache import FitCache

    cache = FitCache(cache_dir='fits')
    signature = FitCache.fit_signature(priors, config, data)

    trace = cache.get('fit_default', signature)
    if trace is None:
        trace = pm.sample(...)
        cache.put('fit_default', trace, signature)

    print(cache.stats())
"""

import hashlib
import json
import os
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Sequence, Union
import warnings

import numpy as np
import arviz as az


REFIT_POLICIES = ('never', 'on_change', 'always')
ARTIFACT_SUFFIX = '.nc'


class FitCache:
    """File-path keyed cache of fitted models."""

    def __init__(self, cache_dir: Union[str, Path] = 'fits',
                 max_size_mb: int = 500):
        """
        Initialize fit cache.

        Args:
            cache_dir: Directory to store fitted models
            max_size_mb: Maximum cache size in megabytes
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_size_mb = max_size_mb
        self.hits = 0
        self.misses = 0

    def resolve(self, file: Union[str, Path]) -> Path:
        """Map a user-facing file name to the artifact path."""
        path = Path(file)
        if path.suffix != ARTIFACT_SUFFIX:
            path = path.with_name(path.name + ARTIFACT_SUFFIX)
        if not path.is_absolute():
            path = self.cache_dir / path
        return path

    @staticmethod
    def _sidecar(artifact: Path) -> Path:
        return artifact.with_name(artifact.name + '.json')

    @staticmethod
    def fit_signature(priors: Sequence, config, data) -> str:
        """
        Generate a signature for a fit from its inputs.

        Args:
            priors: Sequence of PriorSpec
            config: BayesianConfig
            data: SleepStudyData

        Returns:
            MD5 hash string
        """
        prior_part = [p.to_dict() for p in priors]
        config_part = asdict(config)
        # Settings that leave the posterior unchanged
        for key in ('progressbar', 'cores', 'check_convergence', 'rhat_threshold', 'min_ess'):
            config_part.pop(key, None)
        frame = data.frame
        data_part = {
            'Subject': frame['Subject'].tolist(),
            'Days': frame['Days'].astype(int).tolist(),
            'Reaction': np.round(frame['Reaction'].to_numpy(dtype=np.float64), 6).tolist(),
        }
        key_str = json.dumps({'priors': prior_part, 'config': config_part, 'data': data_part},
                             sort_keys=True, default=str)
        return hashlib.md5(key_str.encode()).hexdigest()

    def _stored_signature(self, artifact: Path) -> Optional[str]:
        sidecar = self._sidecar(artifact)
        if not sidecar.exists():
            return None
        try:
            with open(sidecar, 'r') as f:
                return json.load(f).get('signature')
        except (OSError, ValueError):
            return None

    def get(self, file: Union[str, Path],
            signature: Optional[str] = None,
            refit: str = 'on_change') -> Optional[az.InferenceData]:
        """
        Retrieve a cached fit if it may be reused.

        Args:
            file: Artifact name or path
            signature: Signature of the requested fit
            refit: 'never' reuses any stored fit, 'on_change' reuses it only
                when the stored signature matches, 'always' never reuses.
                Without a signature there is nothing to compare, so
                'on_change' behaves like 'never'.

        Returns:
            Cached InferenceData or None if a (re)fit is required
        """
        if refit not in REFIT_POLICIES:
            raise ValueError(f"Unknown refit policy: {refit!r} (expected one of {REFIT_POLICIES})")

        artifact = self.resolve(file)

        if refit == 'always' or not artifact.exists():
            self.misses += 1
            return None

        if refit == 'on_change' and signature is not None:
            stored = self._stored_signature(artifact)
            if stored != signature:
                print(f"[Cache] Inputs changed for {artifact.name}, refitting")
                self.misses += 1
                return None

        try:
            # Load eagerly so the file handle is released
            with az.rc_context({'data.load': 'eager'}):
                trace = az.from_netcdf(str(artifact))
        except Exception as e:
            warnings.warn(f"Corrupted fit artifact {artifact} removed: {e}")
            self._remove(artifact)
            self.misses += 1
            return None

        self.hits += 1
        # Update access time (for LRU)
        os.utime(artifact, None)
        print(f"[Cache] Loaded fit from {artifact}")
        return trace

    def put(self, file: Union[str, Path],
            trace: az.InferenceData,
            signature: Optional[str] = None) -> Path:
        """
        Store a fitted model.

        Args:
            file: Artifact name or path
            trace: InferenceData to store
            signature: Signature of the fit inputs

        Returns:
            Path of the written artifact
        """
        artifact = self.resolve(file)
        artifact.parent.mkdir(parents=True, exist_ok=True)

        trace.to_netcdf(str(artifact))
        with open(self._sidecar(artifact), 'w') as f:
            json.dump({'signature': signature,
                       'created': datetime.now().isoformat(timespec='seconds')}, f)

        print(f"[Cache] Saved fit to {artifact}")
        self._cleanup_if_needed(keep=artifact)
        return artifact

    def _artifacts(self):
        return list(self.cache_dir.rglob(f'*{ARTIFACT_SUFFIX}'))

    def _remove(self, artifact: Path):
        for path in (artifact, self._sidecar(artifact)):
            if path.exists():
                path.unlink()

    def _cleanup_if_needed(self, keep: Optional[Path] = None):
        """Remove least recently used artifacts while over the size limit."""
        files = self._artifacts()
        total_size = sum(f.stat().st_size for f in files)
        limit = self.max_size_mb * 1024 * 1024

        if total_size <= limit:
            return

        for f in sorted(files, key=lambda p: p.stat().st_atime):
            if keep is not None and f.resolve() == keep.resolve():
                continue
            size = f.stat().st_size
            self._remove(f)
            print(f"[Cache] Evicted {f.name}")
            total_size -= size
            if total_size <= limit:
                break

    def clear(self):
        """Clear entire cache and reset statistics."""
        for f in self._artifacts():
            self._remove(f)
        self.hits = 0
        self.misses = 0

    def stats(self) -> Dict[str, float]:
        """
        Return cache statistics.

        Returns:
            Dictionary with hits, misses, hit_rate, size_mb, num_entries
        """
        files = self._artifacts()
        total_size = sum(f.stat().st_size for f in files)
        total_requests = self.hits + self.misses

        return {
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total_requests if total_requests > 0 else 0.0,
            'size_mb': total_size / (1024 * 1024),
            'num_entries': len(files),
        }
