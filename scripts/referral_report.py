# referral_report.py
import asyncio
import logging
import sys
import os

# Хак для корректной работы импортов
sys.path.append(os.getcwd())

from invite_rewards.clients.member_directory import SqlMemberDirectory
from invite_rewards.core.config import settings
from invite_rewards.core.errors import ReferralError
from invite_rewards.core.logging_config import setup_logging
from invite_rewards.db.session import SessionLocal
from invite_rewards.services.currency import default_currency
from invite_rewards.services.referral import build_referral_report

logger = logging.getLogger(__name__)


async def main(member_ids: list[int]):
    """
    Печатает сводку по реферальной программе для указанных участников.
    Удобно для сверки начислений с тем, что видит участник на своей странице.
    """
    directory = SqlMemberDirectory(
        SessionLocal,
        case_insensitive=settings.DIRECTORY_CASE_INSENSITIVE_QUERIES,
        max_or_terms=settings.DIRECTORY_MAX_OR_TERMS,
    )
    currency = default_currency()

    print("--- Referral Report ---")
    for member_id in member_ids:
        try:
            report = await build_referral_report(directory, member_id, currency)
        except ReferralError as e:
            print(f"\n[{member_id}] ERROR: {e.code}: {e.message}")
            continue

        totals = report.totals
        print(f"\n[{member_id}] {report.owner.full_name} (code: {report.owner.invite_code_self})")
        print(f"  Level 1: {len(report.level1)} -> {totals.level1_usd} USD")
        print(f"  Level 2: {len(report.level2)} -> {totals.level2_usd} USD")
        print(f"  Total:   {totals.total_usd} USD / {totals.total_local} {totals.currency}")
        print(f"  Next milestone in {report.progress.remaining} invites")


if __name__ == "__main__":
    setup_logging()
    if len(sys.argv) < 2:
        print("Usage: python scripts/referral_report.py <member_id> [<member_id> ...]")
        sys.exit(1)
    asyncio.run(main([int(arg) for arg in sys.argv[1:]]))
