# tests/test_directory_api.py
from techtool.models.asset import Asset
from techtool.models.project import Project
from techtool.models.user import User


def test_projects_sorted_by_name(client, db):
    db.add_all([Project(id="p-2", name="Website"), Project(id="p-1", name="Admin Portal")])
    db.commit()

    r = client.get("/projects")
    assert r.status_code == 200
    assert r.json() == [{"id": "p-1", "name": "Admin Portal"}, {"id": "p-2", "name": "Website"}]


def test_team_members_only_admins_and_members(client, db):
    db.add_all([
        User(id="u-bob", name="Bob", email="bob@example.com", role="Member", discord_id="42"),
        User(id="u-guest", name="Guest", email="guest@example.com", role="viewer"),
        User(id="u-noname", name=None, email="x@example.com", role="member"),
    ])
    db.commit()

    r = client.get("/team-members")
    assert r.status_code == 200
    assert r.headers["cache-control"] == "public, s-maxage=600"
    body = r.json()
    assert [m["name"] for m in body] == ["Alice", "Bob"]
    assert body[1]["discordId"] == "42"


def test_assets_resolve_people(client, db):
    db.add(User(id="u-bob", name="Bob", email="bob@example.com", role="member"))
    db.add_all([
        Asset(
            id="a-1",
            name="Billing API",
            owner_id="u-bob",
            collaborator_ids=["u-alice", "u-gone"],
            production_url="https://billing.example.com",
            links=["https://github.com/acme/billing", "https://docs"],
        ),
        Asset(id="a-2", name="Wiki"),
    ])
    db.commit()

    r = client.get("/assets")
    assert r.status_code == 200
    assert r.headers["cache-control"] == "public, s-maxage=300, stale-while-revalidate=900"

    billing, wiki = r.json()
    assert billing["owner"] == "Bob"
    assert billing["collaborators"] == ["Alice", "Unknown user"]
    assert billing["source_url"] == "https://github.com/acme/billing"
    assert wiki["owner"] is None
    assert wiki["collaborators"] == []
    assert wiki["source_url"] is None
