"""
Exceptions des Agent Systems.

Keine davon ist fatal für den Prozess - beide Agent-Loops fangen sie
an der Zyklus-Grenze und zählen sie in den Metriken.
Resource-Konflikte und Dependency-Zyklen sind Daten, keine Exceptions.
"""


class RevisionAgentsError(Exception):
    """Basis für alle Fehler des Agent Systems."""


class ScanFailure(RevisionAgentsError):
    """Ein Scanner ist während eines Scan-Zyklus fehlgeschlagen."""

    def __init__(self, scanner: str, cause: BaseException):
        super().__init__(f"Scanner {scanner} failed: {cause}")
        self.scanner = scanner
        self.cause = cause


class PlanValidationFailure(RevisionAgentsError):
    """Plan ist ungültig (leere Phase, unbekannte Dependency) und wird verworfen."""

    def __init__(self, plan_id: str, reason: str):
        super().__init__(f"Plan {plan_id} rejected: {reason}")
        self.plan_id = plan_id
        self.reason = reason


class UnknownPlanReference(RevisionAgentsError):
    """Status-Update für eine unbekannte plan_id."""

    def __init__(self, plan_id: str):
        super().__init__(f"Plan {plan_id} not found")
        self.plan_id = plan_id
