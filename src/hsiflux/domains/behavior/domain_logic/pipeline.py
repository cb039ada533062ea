"""Behavioral pipeline: session JSON -> canonical -> normalized -> derived -> HSI.

``behavior_to_hsi`` is stateless. ``BehaviorProcessor`` keeps a rolling
session baseline across calls; loading and saving that baseline are explicit.
"""

from __future__ import annotations

from hsiflux.domains.behavior.connectors.session_adapter import (
    parse_session,
    session_to_canonical,
)
from hsiflux.domains.behavior.domain_logic import feature_deriver, normalizer
from hsiflux.domains.behavior.domain_logic.baseline_store import (
    DEFAULT_BEHAVIOR_BASELINE_WINDOW,
    BehaviorBaselineStore,
)
from hsiflux.domains.behavior.domain_logic.hsi_encoder import HsiBehaviorEncoder
from hsiflux.domains.behavior.domain_logic.signal_models import DerivedBehaviorSignals


def derive_session(session_json: str) -> DerivedBehaviorSignals:
    """Parse, validate, normalize and derive one session.

    Raises:
        PayloadParseError: If the session JSON is malformed.
        InvalidSessionError: If the session does not end after it starts.
    """
    canonical = session_to_canonical(parse_session(session_json))
    return feature_deriver.derive(normalizer.normalize(canonical))


def behavior_to_hsi(session_json: str) -> str:
    """Encode one session against a fresh, empty baseline."""
    contextual = BehaviorBaselineStore().observe(derive_session(session_json))
    return HsiBehaviorEncoder().encode_to_json(contextual)


class BehaviorProcessor:
    """Stateful behavioral processing for one person."""

    def __init__(self, window_sessions: int = DEFAULT_BEHAVIOR_BASELINE_WINDOW) -> None:
        self._store = BehaviorBaselineStore(window_sessions)
        self._encoder = HsiBehaviorEncoder()

    @property
    def baseline_store(self) -> BehaviorBaselineStore:
        return self._store

    def process(self, session_json: str) -> str:
        """Encode a session and fold it into the baseline.

        A session that fails to parse or validate leaves the baseline untouched.
        """
        derived = derive_session(session_json)
        return self._encoder.encode_to_json(self._store.observe(derived))

    def load_baselines(self, blob: str) -> None:
        """Replace the baseline with a persisted one.

        Raises:
            BaselineStateError: If the blob cannot be loaded. The current
                baseline is kept.
        """
        self._store = BehaviorBaselineStore.from_json(blob)

    def save_baselines(self) -> str:
        return self._store.to_json()

    def baseline_session_count(self) -> int:
        return self._store.session_count()

    def clear_baselines(self) -> None:
        self._store.clear()
