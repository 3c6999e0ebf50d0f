"""Health subsystem — prober, checker, result cache, scheduler."""

from .cache import ResultCache
from .checker import AggregateResult, CheckRun, run_checks
from .engine import ProbeOutcome, Status, probe
from .scheduler import RefreshScheduler
