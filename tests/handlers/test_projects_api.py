"""Tests for the project administration API."""

import re
from unittest.mock import patch

from clicktrack.models.project import Project
from clicktrack.models.project_link_uid_history import ProjectLinkUidHistory
from clicktrack.services.identifiers import SHORT_TOKEN_ALPHABET

BASE_URL = "http://testserver"
EDITOR_HEADERS = {"X-User-Email": "manager@example.com", "X-User-Role": "manager"}
VIEWER_HEADERS = {"X-User-Email": "sales@example.com", "X-User-Role": "sales"}

SHORT_TOKEN_RE = re.compile(f"^[{SHORT_TOKEN_ALPHABET}]{{8}}$")


def _create(client, name="Brand tracker", **extra):
    payload = {"project_name": name, **extra}
    return client.post("/api/projects", json=payload, headers=EDITOR_HEADERS)


class TestCreateProject:

    def test_create_generates_identifiers_and_default_redirects(self, client):
        response = _create(client, client_live_link="https://s.example.com/?r={MID}")

        assert response.status_code == 201
        data = response.json()
        assert data["project_number"] == 101
        assert data["status"] == "pending"
        assert SHORT_TOKEN_RE.match(data["project_uid"])
        assert SHORT_TOKEN_RE.match(data["project_link_uid"])
        assert data["redirect_complete_url"] == f"{BASE_URL}/redirect/complete?mid={{MASKED_ID}}"
        assert data["redirect_securityterminate_url"] == f"{BASE_URL}/redirect/securityTerminate?mid={{MASKED_ID}}"

    def test_project_numbers_are_sequential(self, client):
        numbers = [_create(client, name=f"P{i}").json()["project_number"] for i in range(3)]
        assert numbers == [101, 102, 103]

    def test_requires_editor(self, client, db_session):
        response = client.post("/api/projects", json={"project_name": "X"}, headers=VIEWER_HEADERS)
        assert response.status_code == 403
        response = client.post("/api/projects", json={"project_name": "X"})
        assert response.status_code == 403
        assert db_session.query(Project).count() == 0

    def test_invalid_status_rejected(self, client):
        response = _create(client, status="archived")
        assert response.status_code == 422

    def test_admin_role_is_editor(self, client):
        response = client.post(
            "/api/projects",
            json={"project_name": "X"},
            headers={"X-User-Email": "root@example.com", "X-User-Role": "Admin"},
        )
        assert response.status_code == 201


class TestProjectDetail:

    def test_detail_exposes_entry_links_and_redirects(self, client):
        created = _create(client).json()

        response = client.get(f"/api/projects/{created['id']}", headers=VIEWER_HEADERS)

        assert response.status_code == 200
        data = response.json()
        link_uid = created["project_link_uid"]
        assert data["entry_links"]["live"] == f"{BASE_URL}/entry/{link_uid}/live?id={{USER_ID}}"
        assert data["entry_links"]["test"] == f"{BASE_URL}/entry/{link_uid}/test?id={{USER_ID}}"
        assert set(data["redirects"]) == {"complete", "terminate", "quotafull", "securityTerminate"}
        assert data["can_edit"] is False

    def test_missing_project(self, client):
        assert client.get("/api/projects/999").status_code == 404

    def test_list_counts_clicks_and_completes(self, client, make_project):
        project = make_project(link_uid="ABC12345")
        client.get("/entry/ABC12345/live", params={"id": "u1"})
        client.get("/entry/ABC12345/live", params={"id": "u2"})
        clicks = client.get(f"/api/projects/{project.id}/clicks").json()["clicks"]
        client.get("/redirect/complete", params={"mid": clicks[0]["masked_id"]})

        listed = client.get("/api/projects").json()

        assert len(listed) == 1
        assert listed[0]["total_clicks"] == 2
        assert listed[0]["completes"] == 1

    def test_list_filters(self, client, make_project):
        make_project(link_uid="AAA00001", name="Coffee study", status="live")
        make_project(link_uid="AAA00002", name="Tea study", status="paused")

        assert [p["project_name"] for p in client.get("/api/projects", params={"status": "paused"}).json()] == ["Tea study"]
        assert [p["project_name"] for p in client.get("/api/projects", params={"q": "coffee"}).json()] == ["Coffee study"]

    def test_clicks_show_total_time(self, client, make_project):
        project = make_project(link_uid="ABC12345")
        client.get("/entry/ABC12345/live", params={"id": "u1"})
        mid = client.get(f"/api/projects/{project.id}/clicks").json()["clicks"][0]["masked_id"]
        client.get("/redirect/terminate", params={"mid": mid})
        client.get("/entry/ABC12345/live", params={"id": "u2"})

        clicks = client.get(f"/api/projects/{project.id}/clicks").json()["clicks"]

        by_mid = {c["masked_id"]: c for c in clicks}
        assert re.match(r"^\d{2}:\d{2}:\d{2}$", by_mid[mid]["total_time"])
        assert [c["total_time"] for c in clicks if c["masked_id"] != mid] == ["-"]


class TestProjectUpdates:

    def test_status_change_opens_the_gate(self, client, db_session):
        created = _create(client, client_live_link="https://s.example.com/")
        project_id, link_uid = created.json()["id"], created.json()["project_link_uid"]

        assert client.get(f"/entry/{link_uid}/live", params={"id": "u1"}).status_code == 403

        response = client.put(f"/api/projects/{project_id}/status", json={"status": "live"}, headers=EDITOR_HEADERS)
        assert response.status_code == 200
        assert response.json()["status"] == "live"

        assert client.get(f"/entry/{link_uid}/live", params={"id": "u1"}).status_code == 302

    def test_status_change_requires_editor(self, client):
        project_id = _create(client).json()["id"]
        response = client.put(f"/api/projects/{project_id}/status", json={"status": "live"}, headers=VIEWER_HEADERS)
        assert response.status_code == 403

    def test_updating_links_rotates_link_uid(self, client):
        created = _create(client, status="live", client_live_link="https://old.example.com/").json()
        old_link_uid = created["project_link_uid"]

        response = client.put(
            f"/api/projects/{created['id']}/links",
            json={"client_live_link": "https://new.example.com/?r={MASKED_ID}", "client_test_link": ""},
            headers=EDITOR_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        new_link_uid = data["project_link_uid"]
        assert new_link_uid != old_link_uid
        assert data["project_uid"] == created["project_uid"]
        assert data["client_test_link"] is None

        assert client.get(f"/entry/{old_link_uid}/live", params={"id": "u1"}).status_code == 404
        entry = client.get(f"/entry/{new_link_uid}/live", params={"id": "u1"})
        assert entry.status_code == 302
        assert entry.headers["location"].startswith("https://new.example.com/?r=")

    def test_redirects_are_normalized_to_our_host(self, client):
        project_id = _create(client).json()["id"]

        response = client.put(
            f"/api/projects/{project_id}/redirects",
            json={
                "redirect_complete_url": "https://panel.example.org/done?src=p&mid=",
                "redirect_terminate_url": "http://[::broken",
                "redirect_quotafull_url": "",
                "redirect_securityterminate_url": "/redirect/securityTerminate?mid={mid}",
            },
            headers=EDITOR_HEADERS,
        )

        assert response.status_code == 200
        redirects = response.json()["redirects"]
        assert redirects["complete"] == f"{BASE_URL}/redirect/complete?src=p&mid={{MASKED_ID}}"
        assert redirects["terminate"] == f"{BASE_URL}/redirect/terminate?mid={{MASKED_ID}}"
        assert redirects["quotafull"] == f"{BASE_URL}/redirect/quotafull?mid={{MASKED_ID}}"
        assert redirects["securityTerminate"] == f"{BASE_URL}/redirect/securityTerminate?mid={{mid}}"

    def test_redirects_require_editor(self, client):
        project_id = _create(client).json()["id"]
        response = client.put(f"/api/projects/{project_id}/redirects", json={}, headers=VIEWER_HEADERS)
        assert response.status_code == 403


class TestLinkUidRotation:

    def _rotate(self, client, project_id, live_link="https://new.example.com/"):
        return client.put(
            f"/api/projects/{project_id}/links",
            json={"client_live_link": live_link},
            headers=EDITOR_HEADERS,
        )

    def test_retired_link_uid_is_never_issued_again(self, client, db_session, make_project):
        project = make_project(link_uid="ABC12345")
        values = iter(["NEWUID01", "ABC12345", "FRESH002"])

        with patch("clicktrack.services.identifiers.new_short_token", lambda: next(values)):
            assert self._rotate(client, project.id).json()["project_link_uid"] == "NEWUID01"
            assert self._rotate(client, project.id).json()["project_link_uid"] == "FRESH002"

        assert client.get("/entry/ABC12345/live", params={"id": "u1"}).status_code == 404
        assert client.get("/entry/NEWUID01/live", params={"id": "u1"}).status_code == 404
        assert client.get("/entry/FRESH002/live", params={"id": "u1"}).status_code == 302

        db_session.expire_all()
        retired = {h.link_uid for h in db_session.query(ProjectLinkUidHistory).all()}
        assert retired == {"ABC12345", "NEWUID01"}

    def test_collision_at_commit_regenerates_once(self, client, db_session, make_project):
        make_project(link_uid="TAKEN001")
        project = make_project(link_uid="MINE0001")
        generated = iter(["TAKEN001", "FRESH002"])
        calls = []

        def fake_unique_link_uid(db):
            calls.append(1)
            return next(generated)

        with patch("clicktrack.routers.projects.unique_link_uid", fake_unique_link_uid):
            response = self._rotate(client, project.id)

        assert response.status_code == 200
        assert response.json()["project_link_uid"] == "FRESH002"
        assert len(calls) == 2

        db_session.expire_all()
        history = db_session.query(ProjectLinkUidHistory).all()
        assert [(h.project_id, h.link_uid) for h in history] == [(project.id, "MINE0001")]

    def test_gives_up_after_max_attempts(self, client, db_session, make_project, monkeypatch):
        monkeypatch.setenv("TOKEN_MAX_ATTEMPTS", "3")
        make_project(link_uid="TAKEN001")
        project = make_project(link_uid="MINE0001")
        calls = []

        def always_taken(db):
            calls.append(1)
            return "TAKEN001"

        with patch("clicktrack.routers.projects.unique_link_uid", always_taken):
            response = self._rotate(client, project.id)

        assert response.status_code == 503
        assert len(calls) == 3

        db_session.expire_all()
        assert db_session.get(Project, project.id).project_link_uid == "MINE0001"
        assert db_session.query(ProjectLinkUidHistory).count() == 0
        assert client.get("/entry/MINE0001/live", params={"id": "u1"}).status_code == 302


class TestEditProject:

    def test_edit_name_and_status(self, client):
        created = _create(client, name="Old name").json()

        response = client.put(
            f"/api/projects/{created['id']}",
            json={"project_name": "  New name ", "status": "LIVE"},
            headers=EDITOR_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["project_name"] == "New name"
        assert data["status"] == "live"
        assert data["project_uid"] == created["project_uid"]
        assert data["project_link_uid"] == created["project_link_uid"]

    def test_missing_fields_are_left_alone(self, client):
        created = _create(client, name="Keep me", status="paused").json()
        response = client.put(f"/api/projects/{created['id']}", json={"status": "pending"}, headers=EDITOR_HEADERS)
        assert response.json()["project_name"] == "Keep me"
        assert response.json()["status"] == "pending"

    def test_validation(self, client):
        project_id = _create(client).json()["id"]
        assert client.put(f"/api/projects/{project_id}", json={"project_name": "  "}, headers=EDITOR_HEADERS).status_code == 422
        assert client.put(f"/api/projects/{project_id}", json={"status": "archived"}, headers=EDITOR_HEADERS).status_code == 422

    def test_requires_editor_and_existing_project(self, client):
        project_id = _create(client).json()["id"]
        assert client.put(f"/api/projects/{project_id}", json={"project_name": "X"}, headers=VIEWER_HEADERS).status_code == 403
        assert client.put("/api/projects/9999", json={"project_name": "X"}, headers=EDITOR_HEADERS).status_code == 404


class TestCountryLinks:

    def _add(self, client, project_id, headers=EDITOR_HEADERS, **overrides):
        payload = {
            "country_name": "Mexico",
            "mode": "live",
            "link_url": "https://panel.example.mx/e?id={USER_ID}",
            "remark": "panel MX",
            **overrides,
        }
        return client.post(f"/api/projects/{project_id}/country-links", json=payload, headers=headers)

    def test_add_list_and_show_in_detail(self, client):
        project_id = _create(client).json()["id"]

        first = self._add(client, project_id)
        second = self._add(client, project_id, country_name=" Chile ", mode="TEST", remark="   ")

        assert first.status_code == 201
        assert first.json()["country_name"] == "Mexico"
        assert first.json()["remark"] == "panel MX"
        assert second.json()["country_name"] == "Chile"
        assert second.json()["mode"] == "test"
        assert second.json()["remark"] is None

        listed = client.get(f"/api/projects/{project_id}/country-links").json()
        assert [link["country_name"] for link in listed] == ["Chile", "Mexico"]  # newest first

        detail = client.get(f"/api/projects/{project_id}").json()
        assert [link["id"] for link in detail["country_links"]] == [link["id"] for link in listed]

    def test_invalid_payload_rejected(self, client):
        project_id = _create(client).json()["id"]
        assert self._add(client, project_id, country_name="").status_code == 422
        assert self._add(client, project_id, link_url="   ").status_code == 422
        assert self._add(client, project_id, mode="staging").status_code == 422
        assert client.get(f"/api/projects/{project_id}/country-links").json() == []

    def test_add_requires_editor(self, client):
        project_id = _create(client).json()["id"]
        assert self._add(client, project_id, headers=VIEWER_HEADERS).status_code == 403
        assert self._add(client, 9999).status_code == 404

    def test_delete(self, client):
        project_id = _create(client).json()["id"]
        link_id = self._add(client, project_id).json()["id"]

        assert client.delete(f"/api/projects/{project_id}/country-links/{link_id}", headers=VIEWER_HEADERS).status_code == 403

        response = client.delete(f"/api/projects/{project_id}/country-links/{link_id}", headers=EDITOR_HEADERS)
        assert response.status_code == 204
        assert client.get(f"/api/projects/{project_id}/country-links").json() == []

        again = client.delete(f"/api/projects/{project_id}/country-links/{link_id}", headers=EDITOR_HEADERS)
        assert again.status_code == 404

    def test_delete_only_within_its_project(self, client):
        project_a = _create(client, name="A").json()["id"]
        project_b = _create(client, name="B").json()["id"]
        link_id = self._add(client, project_a).json()["id"]

        response = client.delete(f"/api/projects/{project_b}/country-links/{link_id}", headers=EDITOR_HEADERS)
        assert response.status_code == 404
        assert len(client.get(f"/api/projects/{project_a}/country-links").json()) == 1
