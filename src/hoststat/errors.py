"""Exceptions raised by hoststat probes."""


class ProbeFailure(Exception):
    """An OS query made by a probe did not succeed.

    Probes never let this escape to their callers. They log it, keep it on
    ``last_failure`` and fall back to a zero or previous value.
    """

    def __init__(self, probe: str, reason: str) -> None:
        super().__init__(f"{probe}: {reason}")
        self.probe = probe
        self.reason = reason
