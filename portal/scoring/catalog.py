"""
Interview catalogue: sections, red flags and status thresholds.

The catalogue is configuration, not user data. It is loaded from
scoring_config.yaml next to this module, cached in-process, and falls back
to a hard-coded copy when the file is missing or unreadable.
"""
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger('scoring.catalog')


@dataclass(frozen=True)
class Section:
    """One scripted interview topic carrying a 1/3/5 score."""
    id: str
    title: str
    prompts: Tuple[str, ...] = ()
    red_flag: str = ''


@dataclass(frozen=True)
class RedFlag:
    index: int
    text: str


@dataclass(frozen=True)
class Thresholds:
    """Minimum section totals for the score-derived statuses."""
    fast_track: int = 17
    nurture: int = 12

    def __post_init__(self):
        if self.nurture > self.fast_track:
            raise ValueError(
                f"nurture threshold ({self.nurture}) must not exceed fast-track ({self.fast_track})"
            )


# ── Scoring config (YAML with hardcoded fallback) ────────────────────────────

_scoring_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'thresholds': {'fast_track': 17, 'nurture': 12},
        'score_values': [1, 3, 5],
        'sections': [
            {'id': 'motivation', 'title': 'Motivation & Ownership', 'prompts': [],
             'red_flag': 'I applied because someone told me to try'},
            {'id': 'ops', 'title': 'Food & Ops Readiness', 'prompts': [],
             'red_flag': 'Wants income but no daily involvement'},
            {'id': 'finance', 'title': 'Financial & Bank Readiness', 'prompts': [],
             'red_flag': 'Wants machine without loan process'},
            {'id': 'mindset', 'title': 'Business & Learning Mindset', 'prompts': [],
             'red_flag': 'Fixed expectations, resistant to training'},
        ],
        'red_flags': [
            'I applied because someone told me to try',
            'Wants income but no daily involvement',
            'Wants machine without loan process',
            'Fixed expectations, resistant to training',
        ],
    }


def load_scoring_config():
    """Load scoring config from YAML, with in-memory cache and hardcoded fallback."""
    global _scoring_config
    if _scoring_config is not None:
        return _scoring_config

    config_path = os.path.join(os.path.dirname(__file__), 'scoring_config.yaml')
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f)
        if not isinstance(loaded, dict):
            raise ValueError("scoring config is not a mapping")
        _scoring_config = loaded
        logger.info("Config loaded from YAML (version=%s)", _scoring_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not usable (%s), using defaults", e)
        _scoring_config = _default_config()

    return _scoring_config


def get_sections(config: Optional[Dict] = None) -> List[Section]:
    """Sections in display order."""
    cfg = config or load_scoring_config()
    raw = cfg.get('sections') or _default_config()['sections']
    return [
        Section(
            id=str(entry['id']),
            title=str(entry.get('title', entry['id'])),
            prompts=tuple(entry.get('prompts') or ()),
            red_flag=str(entry.get('red_flag', '')),
        )
        for entry in raw
    ]


def get_red_flags(config: Optional[Dict] = None) -> List[RedFlag]:
    cfg = config or load_scoring_config()
    raw = cfg.get('red_flags') or _default_config()['red_flags']
    return [RedFlag(index=i, text=str(text)) for i, text in enumerate(raw)]


def get_score_values(config: Optional[Dict] = None) -> Tuple[int, ...]:
    cfg = config or load_scoring_config()
    return tuple(int(v) for v in (cfg.get('score_values') or (1, 3, 5)))


def default_thresholds(config: Optional[Dict] = None) -> Thresholds:
    """
    Thresholds from env overrides, then the YAML config, then the dataclass defaults.

    FAST_TRACK_THRESHOLD / NURTURE_THRESHOLD win over the file so a
    deployment can move the cut-offs without editing the catalogue.
    """
    cfg = config or load_scoring_config()
    raw = cfg.get('thresholds') or {}
    fast_track = os.getenv('FAST_TRACK_THRESHOLD') or raw.get('fast_track', Thresholds.fast_track)
    nurture = os.getenv('NURTURE_THRESHOLD') or raw.get('nurture', Thresholds.nurture)
    return Thresholds(fast_track=int(fast_track), nurture=int(nurture))
