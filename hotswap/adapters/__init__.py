"""Adapter package for external process and archive implementations.

Purpose:
    Concrete implementations of the ports in ``hotswap.domain.ports``:
    ``systemctl`` service control, in-process and command-line archive tools,
    and the timeout-bounded command runner they share.

Call context:
    Wired by ``hotswap.usecases.run_upgrade.RunUpgrade`` when no test double
    is injected.
"""
