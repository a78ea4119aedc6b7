#!/usr/bin/env python3
"""
CollaboraX — Sample Workspace Seeder
Fills a workspace with reproducible users, teams, meetings, documents,
locker items and chat messages. Used for demos and manual testing.

Usage:
    python scripts/seed_workspace.py --storage ./workspace-data
    python scripts/seed_workspace.py --storage ./workspace-data --users 12 --teams 4 --seed 7
"""

import random
import asyncio
import argparse
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from main import build_storage, create_app_state
from models import PUBLIC_CHANNEL, TeamRole
from state import AppState


# ── Configuration ───────────────────────────────────────────

FIRST_NAMES = ["Alex", "Jordan", "Taylor", "Morgan", "Casey", "Riley", "Quinn", "Avery", "Sage", "River",
               "Kai", "Rowan", "Phoenix", "Skyler", "Dakota", "Reese", "Finley", "Harper", "Emery", "Blake"]
LAST_NAMES = ["Chen", "Patel", "Kim", "Santos", "Müller", "Okafor", "Tanaka", "Johansson", "Silva", "Kowalski"]
TEAM_NAMES = ["Squad", "Design Guild", "Platform", "Research Lab", "Launch Crew", "Support"]
MEETING_TITLES = ["Sprint planning", "Retro", "Design review", "1:1", "Kickoff", "Demo day"]
DOCUMENT_NAMES = ["Roadmap", "Meeting notes", "Onboarding guide", "Budget", "Release checklist"]
LOCKER_ITEMS = [
    ("Brand assets.png", "https://cdn.example.org/brand.png"),
    ("Quarterly report.pdf", "https://cdn.example.org/q3.pdf"),
    ("Walkthrough.mp4", "https://cdn.example.org/walkthrough.mp4"),
    ("notes.txt", "data:text/plain;base64,bm90ZXM="),
]
CHAT_LINES = ["Morning!", "Pushed the fix.", "Can someone review?", "Lunch?", "Shipping today.", "Thanks!"]
DEFAULT_PASSWORD = "collaborax"


class WorkspaceSeeder:
    """Populates a started AppState through its public mutations."""

    def __init__(self, state: AppState, seed: int = 42):
        self.state = state
        self.rng = random.Random(seed)
        self.now = datetime.now(timezone.utc)
        self.counts: Dict[str, int] = {
            "users": 0, "teams": 0, "members": 0, "meetings": 0,
            "documents": 0, "files": 0, "messages": 0,
        }

    def _name(self) -> str:
        return f"{self.rng.choice(FIRST_NAMES)} {self.rng.choice(LAST_NAMES)}"

    def _meeting_time(self) -> str:
        delta = timedelta(days=self.rng.randint(-10, 20), hours=self.rng.randint(8, 17))
        return (self.now + delta).replace(minute=0, second=0, microsecond=0).isoformat()

    async def seed_users(self, count: int) -> List[str]:
        emails = []
        for i in range(count):
            name = self._name()
            email = f"{name.split()[0].lower()}.{i}@collaborax.dev"
            result = await self.state.signup(name, email, DEFAULT_PASSWORD)
            if result.success:
                emails.append(email)
                self.counts["users"] += 1
            self.state.logout()
        return emails

    async def seed_team(self, name: str, owner_email: str, member_emails: List[str]) -> None:
        await self.state.login(owner_email, DEFAULT_PASSWORD)
        result = await self.state.create_team(name)
        team_id = result.id
        self.counts["teams"] += 1

        for email in member_emails:
            if (await self.state.add_team_member(team_id, email)).success:
                self.counts["members"] += 1

        team = self.state.get_team(team_id)
        others = [m.user_id for m in team.members if m.role != TeamRole.OWNER]
        if others:
            await self.state.update_user_role(team_id, self.rng.choice(others), TeamRole.SUB_ADMIN)

        for _ in range(self.rng.randint(1, 3)):
            await self.state.add_meeting(
                team_id, self.rng.choice(MEETING_TITLES),
                f"https://meet.example.org/{self.rng.randint(1000, 9999)}", self._meeting_time(),
            )
            self.counts["meetings"] += 1

        for doc_name in self.rng.sample(DOCUMENT_NAMES, 2):
            password = "secret" if self.rng.random() < 0.3 else None
            await self.state.add_document(team_id, doc_name, f"{doc_name} for {name}.", password=password)
            self.counts["documents"] += 1

        file_name, url = self.rng.choice(LOCKER_ITEMS)
        await self.state.add_file(team_id, file_name, url)
        await self.state.add_link(team_id, "Team wiki", "https://wiki.example.org/" + name.lower().replace(" ", "-"))
        self.counts["files"] += 2

        for _ in range(self.rng.randint(2, 5)):
            await self.state.send_message(team_id, PUBLIC_CHANNEL, self.rng.choice(CHAT_LINES))
            self.counts["messages"] += 1
        if others:
            await self.state.send_message(team_id, others[0], "Got a minute?")
            self.counts["messages"] += 1

        self.state.logout()

    async def seed_all(self, users: int, teams: int) -> Dict[str, int]:
        emails = await self.seed_users(users)
        for i in range(min(teams, len(emails))):
            owner = emails[i]
            pool = [e for e in emails if e != owner]
            members = self.rng.sample(pool, min(len(pool), self.rng.randint(1, 4)))
            await self.seed_team(TEAM_NAMES[i % len(TEAM_NAMES)], owner, members)
        return self.counts


async def _seed(args) -> Dict[str, int]:
    state = await create_app_state(build_storage(args.storage))
    try:
        return await WorkspaceSeeder(state, seed=args.seed).seed_all(args.users, args.teams)
    finally:
        await state.db.store.close()


def main():
    parser = argparse.ArgumentParser(description="CollaboraX Sample Workspace Seeder")
    parser.add_argument("--storage", type=str, required=True, help="Workspace storage directory")
    parser.add_argument("--users", type=int, default=8, help="Number of users")
    parser.add_argument("--teams", type=int, default=3, help="Number of teams")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    counts = asyncio.run(_seed(args))

    print(f"✅ Workspace seeded: {args.storage}")
    for key, value in counts.items():
        print(f"   {key.capitalize()}: {value}")
    print(f"   Password for every account: {DEFAULT_PASSWORD}")


if __name__ == "__main__":
    main()
