"""Trigger drivers: one plain run(ctx, report) function per notification source."""
