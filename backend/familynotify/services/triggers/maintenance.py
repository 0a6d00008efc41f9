"""Daily retention cleanup, run like any other trigger so it shows up in the cron history."""
from familynotify.services.admin_service import prune_retention
from familynotify.services.triggers.base import RunReport, TriggerContext


def run_maintenance(ctx: TriggerContext, report: RunReport) -> None:
    for name, count in prune_retention(ctx.db, ctx.now).items():
        report.stats[f"pruned_{name}"] = count
