"""
Find students that share name, class, section and date of birth, and optionally remove
the extra copies (the oldest record in each group is kept).

Usage:
  python -m app.scripts.find_duplicates
  python -m app.scripts.find_duplicates --tenant 6f1c...e2
  python -m app.scripts.find_duplicates --remove          # asks for confirmation
  python -m app.scripts.find_duplicates --remove --yes
"""

import argparse
import asyncio
import sys
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.students.duplicates import DuplicateGroup, find_duplicate_groups, remove_duplicates
from app.db.session import session_scope


def print_groups(groups: List[DuplicateGroup]) -> None:
    for number, group in enumerate(groups, start=1):
        print(f"Group {number}: {group.name} - {group.class_name} {group.section} (tenant {group.tenant_id})")
        for position, student in enumerate(group.students):
            marker = "KEEP  " if position == 0 else "DELETE"
            print(f"  {marker} Index: {student.index_number} | ID: {student.id}")
        print("")


def ask_confirmation(question: str) -> bool:
    answer = input(question).strip().lower()
    return answer in ("y", "yes")


async def run(session: AsyncSession, tenant_id: Optional[UUID], remove: bool, assume_yes: bool) -> int:
    groups = await find_duplicate_groups(session, tenant_id)
    if not groups:
        print("No duplicates found.")
        return 0

    extra = sum(len(g.extras) for g in groups)
    print(f"Duplicate records found: {extra} in {len(groups)} group(s)\n")
    print_groups(groups)

    if not remove:
        print("Run again with --remove to delete the extra copies.")
        return 0
    if not assume_yes and not ask_confirmation(f"Delete {extra} duplicate student record(s)? (yes/no): "):
        print("Operation cancelled. No changes made.")
        return 0

    deleted = await remove_duplicates(session, groups)
    print(f"Deleted {deleted} duplicate student record(s).")
    return deleted


async def find_duplicates(tenant_id: Optional[UUID], remove: bool, assume_yes: bool) -> None:
    async with session_scope() as session:
        await run(session, tenant_id, remove, assume_yes)


def main() -> None:
    parser = argparse.ArgumentParser(description="Report and remove duplicate students.")
    parser.add_argument("--tenant", type=UUID, default=None, help="Limit to one tenant id")
    parser.add_argument("--remove", action="store_true", help="Delete all but the oldest record per group")
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = parser.parse_args()
    try:
        asyncio.run(find_duplicates(args.tenant, args.remove, args.yes))
    except KeyboardInterrupt:
        print("Aborted.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
