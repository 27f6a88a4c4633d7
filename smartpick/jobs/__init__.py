from smartpick.jobs.expiry_sweeper import (
    expiry_sweep_scheduler,
    run_expiry_sweep,
    sweeper_heartbeat,
)
