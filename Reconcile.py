# Reconcile.py
# Rules that keep the system flags consistent.
#
# Every function is pure: it takes the current SystemFlags and returns a new
# pair. SystemFlags itself refuses emergency and recovery both set.

from typing import Any, Optional

from State import Flag, SystemFlags


def flag_from_status(status: Any) -> Optional[Flag]:
    """Map a system-status value to the flag it requests; None means clear."""
    if status == Flag.EMERGENCY.value:
        return Flag.EMERGENCY
    if status == Flag.RECOVERY.value:
        return Flag.RECOVERY
    return None


def apply_flag(current: SystemFlags, requested: Optional[Flag]) -> SystemFlags:
    """Reset both flags, then set the requested one (None sets nothing).

    An authoritative status replaces the previous pair entirely, so the
    result does not depend on current.
    """
    if requested is None:
        return SystemFlags()
    if Flag(requested) is Flag.EMERGENCY:
        return SystemFlags(emergency=True, recovery=False)
    return SystemFlags(emergency=False, recovery=True)


def toggle_flag(current: SystemFlags, flag: Flag) -> SystemFlags:
    """Flip one flag; turning it on turns the other off."""
    if Flag(flag) is Flag.EMERGENCY:
        emergency = not current.emergency
        return SystemFlags(emergency=emergency, recovery=current.recovery and not emergency)
    recovery = not current.recovery
    return SystemFlags(emergency=current.emergency and not recovery, recovery=recovery)


def on_motor_on(current: SystemFlags) -> SystemFlags:
    """Running the up motor ends recovery; emergency is left alone."""
    return SystemFlags(emergency=current.emergency, recovery=False)
