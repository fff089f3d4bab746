"""Payroll workflow command line interface.

Provides operational tools for:
- Schema creation
- Calendar-driven period generation
- Record generation and period summaries

Usage:
    python -m payroll_workflow.cli init-db
    python -m payroll_workflow.cli generate-periods --year 2025
    python -m payroll_workflow.cli generate-month --year 2025 --month 3
    python -m payroll_workflow.cli generate-records --period-id X
    python -m payroll_workflow.cli summary --period-id X
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Callable, Coroutine
from uuid import UUID

from payroll_workflow.config import configure_logging
from payroll_workflow.database import create_all, dispose_db, get_session, init_db
from payroll_workflow.errors import PayrollError
from payroll_workflow.services.period_service import PayrollPeriodService
from payroll_workflow.services.record_service import PayrollRecordService
from payroll_workflow.services.reporting_service import PayrollReportingService


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class PayrollCli:
    """Payroll workflow command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m payroll_workflow.cli",
            description="Payroll workflow operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Override DATABASE_URL",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            help="Override LOG_LEVEL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # init-db command
        subparsers.add_parser(
            "init-db",
            help="Create all tables",
        )

        # generate-periods command
        periods = subparsers.add_parser(
            "generate-periods",
            help="Create the twelve monthly periods of a year",
        )
        periods.add_argument(
            "--year",
            type=int,
            required=True,
            help="Calendar year",
        )

        # generate-month command
        month = subparsers.add_parser(
            "generate-month",
            help="Create the period for one month",
        )
        month.add_argument(
            "--year",
            type=int,
            required=True,
            help="Calendar year",
        )
        month.add_argument(
            "--month",
            type=int,
            required=True,
            choices=range(1, 13),
            metavar="{1..12}",
            help="Calendar month",
        )

        # generate-records command
        records = subparsers.add_parser(
            "generate-records",
            help="Generate payroll records for a draft period",
        )
        records.add_argument(
            "--period-id",
            type=parse_uuid,
            required=True,
            help="Payroll period ID",
        )

        # summary command
        summary = subparsers.add_parser(
            "summary",
            help="Print totals for a period",
        )
        summary.add_argument(
            "--period-id",
            type=parse_uuid,
            required=True,
            help="Payroll period ID",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level.upper() if parsed.log_level else None)

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Coroutine[Any, Any, int]]] = {
            "init-db": self._cmd_init_db,
            "generate-periods": self._cmd_generate_periods,
            "generate-month": self._cmd_generate_month,
            "generate-records": self._cmd_generate_records,
            "summary": self._cmd_summary,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        return asyncio.run(self._dispatch(handler, parsed))

    async def _dispatch(
        self,
        handler: Callable[[argparse.Namespace], Coroutine[Any, Any, int]],
        args: argparse.Namespace,
    ) -> int:
        init_db(args.database_url)
        try:
            return await handler(args)
        except PayrollError as e:
            print(f"ERROR [{e.code}]: {e.message}", file=sys.stderr)
            return 1
        finally:
            await dispose_db()

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""
        await create_all()
        print("Database schema created.")
        return 0

    async def _cmd_generate_periods(self, args: argparse.Namespace) -> int:
        """Create the monthly periods of a year."""
        async with get_session() as session:
            periods = await PayrollPeriodService(session).generate_yearly_periods(args.year)

        if not periods:
            print(f"Payroll periods for {args.year} already exist; nothing created.")
            return 0

        print(f"Created {len(periods)} payroll periods for {args.year}:")
        for period in periods:
            print(
                f"  {period.period_name:<16} {period.start_date} - {period.end_date}"
                f"  {period.working_days} days / {period.expected_monthly_hours} h"
            )
        return 0

    async def _cmd_generate_month(self, args: argparse.Namespace) -> int:
        """Create the period for one month."""
        async with get_session() as session:
            period, created = await PayrollPeriodService(session).generate_monthly_period(
                args.year, args.month
            )

        verb = "Created" if created else "Exists"
        print(f"{verb}: {period.period_name} ({period.payroll_period_id})")
        return 0

    async def _cmd_generate_records(self, args: argparse.Namespace) -> int:
        """Generate payroll records for a period."""
        async with get_session() as session:
            report = await PayrollRecordService(session).generate_payroll_records(
                args.period_id
            )

        print(f"Generated {len(report.records)} payroll records")
        print(f"  Gross: {report.total_gross:>15,.2f}")
        print(f"  Net:   {report.total_net:>15,.2f}")
        for issue in report.errors:
            print(f"  ! {issue.employee_name}: {issue.message}")
        for issue in report.warnings:
            print(f"  ? {issue.employee_name}: {issue.message}")
        return 0 if report.success else 2

    async def _cmd_summary(self, args: argparse.Namespace) -> int:
        """Print a period's totals."""
        async with get_session() as session:
            summary = await PayrollReportingService(session).get_payroll_summary(
                args.period_id
            )

        print(f"{summary.period_name} [{summary.period_status}]")
        print(f"  Employees:   {summary.total_employees}")
        print(f"  Gross:       {summary.total_gross_pay:>15,.2f}")
        print(f"  Deductions:  {summary.total_deductions:>15,.2f}")
        print(f"  Benefits:    {summary.total_benefits:>15,.2f}")
        print(f"  Net:         {summary.total_net_pay:>15,.2f}")
        print(
            f"  Draft / processed / paid: {summary.pending_count} / "
            f"{summary.processed_count} / {summary.paid_count}"
        )
        print(f"  Completion:  {summary.completion_rate}%")
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
