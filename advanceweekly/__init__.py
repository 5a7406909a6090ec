"""AdvanceWeekly: scheduled weekly reflection generation jobs."""
