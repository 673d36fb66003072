"""
Seed script to create demo users and issues for development.
Run with: python -m scripts.seed_issues

Documents use fixed ids and are upserted, so the script can be run again
without creating duplicates.
"""

import asyncio
from datetime import timedelta
from uuid import NAMESPACE_URL, uuid5

from db.cosmos_session import ISSUES_CONTAINER, USERS_CONTAINER, close_cosmos, upsert_item
from models.cosmos_documents import (
    GeoLocation,
    IssueComment,
    IssueDocument,
    IssueStatus,
    StatusHistoryEntry,
    UserDocument,
    to_document_body,
    utc_now,
)
from models.issue_workflow import INITIAL_COMMENT, INITIAL_STATUS, can_transition


def _seed_id(kind: str, key: str) -> str:
    return str(uuid5(NAMESPACE_URL, f"civicvoice-seed/{kind}/{key}"))


SEED_USERS = [
    {"key": "kamal", "name": "Kamal Perera", "email": "kamal.perera@example.com", "role": "citizen"},
    {"key": "nimal", "name": "Nimal Silva", "email": "nimal.silva@example.com", "role": "citizen"},
    {"key": "amaya", "name": "Amaya Fernando", "email": "amaya.fernando@example.com", "role": "citizen"},
    {"key": "ruwan", "name": "Ruwan Jayawardena", "email": "ruwan.official@example.com", "role": "official"},
    {"key": "dilani", "name": "Dilani Ratnayake", "email": "dilani.admin@example.com", "role": "admin"},
]

# Each step after the initial report is (status, actor key, comment)
SEED_ISSUES = [
    {
        "key": "main-street-pothole",
        "title": "Large pothole on Main Street",
        "description": "A pothole about two feet wide near the 5th Avenue junction is damaging vehicles.",
        "category": "Pothole",
        "coordinates": [79.8612, 6.9271],
        "address": "Main Street & 5th Avenue, Colombo 03",
        "reporter": "kamal",
        "steps": [],
        "comments": [],
    },
    {
        "key": "park-road-streetlight",
        "title": "Broken streetlight near Central Park",
        "description": "The corner streetlight on Park Road has been dark for a week.",
        "category": "Broken Streetlight",
        "coordinates": [79.8598, 6.9147],
        "address": "Park Road, Colombo 07",
        "reporter": "nimal",
        "steps": [("In Progress", "ruwan", "Maintenance crew dispatched.")],
        "comments": [("ruwan", "A maintenance visit is scheduled for tomorrow morning.")],
    },
    {
        "key": "pettah-dumping",
        "title": "Illegal dumping behind Pettah Market",
        "description": "Construction waste keeps piling up behind the market and attracts stray animals.",
        "category": "Illegal Dumping",
        "coordinates": [79.8514, 6.9355],
        "address": "Behind Pettah Market, Colombo 11",
        "reporter": "amaya",
        "steps": [],
        "comments": [],
    },
    {
        "key": "galle-road-leak",
        "title": "Water leak on Galle Road",
        "description": "A burst pipe under Galle Road is flooding the carriageway.",
        "category": "Water Leak",
        "coordinates": [79.8562, 6.8987],
        "address": "Galle Road, Colpetty Junction, Colombo 03",
        "reporter": "kamal",
        "steps": [
            ("In Progress", "ruwan", "Water board notified."),
            ("Resolved", "dilani", "Pipe repaired."),
        ],
        "comments": [
            ("ruwan", "The water supply board has been notified."),
            ("dilani", "Repair completed. Thank you for your patience."),
        ],
    },
    {
        "key": "bambalapitiya-signal",
        "title": "Traffic signal stuck at Bambalapitiya",
        "description": "The junction signal is stuck on red during peak hours.",
        "category": "Traffic Signal",
        "coordinates": [79.8561, 6.8939],
        "address": "Bambalapitiya Junction, Colombo 04",
        "reporter": "nimal",
        "steps": [("In Progress", "dilani", "Traffic police notified.")],
        "comments": [("dilani", "An officer is directing traffic at the junction for now.")],
    },
    {
        "key": "ward-place-crack",
        "title": "Minor crack on side lane",
        "description": "Small crack on a lane off Ward Place; found to be minor on a second look.",
        "category": "Pothole",
        "coordinates": [79.8621, 6.9113],
        "address": "Side lane off Ward Place, Colombo 07",
        "reporter": "amaya",
        "steps": [("Withdrawn", "amaya", "Issue withdrawn by reporter")],
        "comments": [],
    },
]


def build_seed_users() -> list[UserDocument]:
    return [
        UserDocument(id=_seed_id("user", u["key"]), name=u["name"], email=u["email"], role=u["role"])
        for u in SEED_USERS
    ]


def build_seed_issues(users: dict[str, UserDocument]) -> list[IssueDocument]:
    """
    Build the demo issues, replaying each status path through the workflow.

    Raises:
        ValueError: A seed path contains a transition the workflow does not allow
    """
    now = utc_now()
    issues = []
    for age, data in enumerate(SEED_ISSUES):
        reporter = users[data["reporter"]]
        created_at = now - timedelta(days=age + 1)

        status = INITIAL_STATUS
        history = [
            StatusHistoryEntry(status=status, changed_by=reporter.id, comment=INITIAL_COMMENT, timestamp=created_at)
        ]
        for hours, (target, actor, comment) in enumerate(data["steps"], start=1):
            target = IssueStatus(target)
            if not can_transition(status, target):
                raise ValueError(f"Seed issue {data['key']!r}: {status.value} -> {target.value} is not allowed")
            status = target
            history.append(
                StatusHistoryEntry(
                    status=status,
                    changed_by=users[actor].id,
                    comment=comment,
                    timestamp=created_at + timedelta(hours=hours),
                )
            )

        issues.append(
            IssueDocument(
                id=_seed_id("issue", data["key"]),
                title=data["title"],
                description=data["description"],
                category=data["category"],
                status=status,
                location=GeoLocation(coordinates=data["coordinates"], address=data["address"]),
                reporter_id=reporter.id,
                status_history=history,
                comments=[
                    IssueComment(
                        id=_seed_id("comment", f"{data['key']}/{i}"),
                        author_id=users[author].id,
                        text=text,
                        timestamp=created_at + timedelta(hours=i + 1),
                    )
                    for i, (author, text) in enumerate(data["comments"])
                ],
                created_at=created_at,
                updated_at=history[-1].timestamp,
            )
        )
    return issues


async def seed_issues() -> list[IssueDocument]:
    """Upsert the demo users and issues."""
    users = build_seed_users()
    by_key = {data["key"]: user for data, user in zip(SEED_USERS, users)}
    issues = build_seed_issues(by_key)

    try:
        for user in users:
            await upsert_item(USERS_CONTAINER, to_document_body(user))
            print(f"   {user.role:<8} -> {user.name} ({user.email}) | ID: {user.id}")

        for issue in issues:
            await upsert_item(ISSUES_CONTAINER, to_document_body(issue))
            print(f"   [{issue.status:<11}] {issue.title}")
    finally:
        await close_cosmos()

    print(f"\n✅ Seeded {len(users)} users and {len(issues)} issues")
    for status in IssueStatus:
        print(f"   {status.value + ':':<12} {sum(1 for i in issues if i.status == status.value)}")
    return issues


if __name__ == "__main__":
    asyncio.run(seed_issues())
