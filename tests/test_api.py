"""Tests for the HTTP endpoints."""

import pytest

API = "/api/v1"


@pytest.fixture
def setup_ids(client):
    """Create the academic directory through the API."""
    levels = client.post(f"{API}/academics/class-levels/setup").json()
    session = client.post(f"{API}/academics/sessions", json={"name": "2025/2026", "is_current": True}).json()
    term = client.post(
        f"{API}/academics/terms",
        json={"session_id": session["id"], "name": "First Term", "order": 1, "is_current": True},
    ).json()
    jss1 = next(level for level in levels if level["name"] == "JSS1")

    subject_ids = {}
    for name in ("Mathematics", "English", "Physics", "Chemistry", "Biology"):
        subject_ids[name] = client.post(f"{API}/academics/subjects", json={"name": name}).json()["id"]

    student_ids = []
    for number, name in (("jss1/001", "Ada Obi"), ("JSS1/002", "Bayo Ade")):
        response = client.post(
            f"{API}/academics/students",
            json={
                "admission_number": number,
                "full_name": name,
                "class_level_id": jss1["id"],
                "enrollment_session_id": session["id"],
            },
        )
        assert response.status_code == 201
        student_ids.append(response.json()["id"])

    return {
        "session_id": session["id"],
        "term_id": term["id"],
        "class_level_id": jss1["id"],
        "subject_ids": subject_ids,
        "student_ids": student_ids,
    }


def upload(client, path, content, ids, file_name="scores.csv"):
    return client.post(
        f"{API}/results/imports/{path}",
        data={"session_id": ids["session_id"], "term_id": ids["term_id"]},
        files={"file": (file_name, content, "text/csv")},
    )


CA_CSV = (
    "admission_number,subject,ca_score,theory_score\n"
    "JSS1/001,Mathematics,25,35\n"
    "JSS1/001,English,20,30\n"
    "JSS1/001,Physics,20,30\n"
    "JSS1/001,Chemistry,20,30\n"
    "JSS1/001,Biology,20,30\n"
    "JSS1/002,Mathematics,10,15\n"
    "JSS1/002,English,20,30\n"
)
EXAM_CSV = (
    "admission_number,subject_name,exam_score\n"
    "JSS1/001,Mathematics,28\n"
    "JSS1/001,English,20\n"
    "JSS1/001,Physics,20\n"
    "JSS1/001,Chemistry,20\n"
    "JSS1/001,Biology,20\n"
    "JSS1/002,Mathematics,10\n"
    "JSS1/002,English,20\n"
)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers


class TestScoreWorkflow:
    def test_import_rank_evaluate_apply(self, client, setup_ids):
        ids = setup_ids

        report = upload(client, "ca-theory", CA_CSV, ids).json()
        assert (report["created"], report["failed"]) == (7, 0)

        report = upload(client, "exam", EXAM_CSV, ids).json()
        assert (report["updated"], report["missing_ca_scores"]) == (7, [])

        summary = client.post(
            f"{API}/results/recalculate-positions",
            json={"session_id": ids["session_id"], "term_id": ids["term_id"]},
        ).json()
        assert summary["subjects_processed"] == 5

        listing = client.get(
            f"{API}/results",
            params={"subject_id": ids["subject_ids"]["Mathematics"], "session_id": ids["session_id"]},
        ).json()
        assert listing["total"] == 2
        top = listing["items"][0]
        assert (top["admission_number"], top["position"], top["grade"]) == ("JSS1/001", 1, "A")
        assert top["total_score"] == "88.0"

        evaluation = client.post(
            f"{API}/promotion/evaluate",
            json={
                "class_level_id": ids["class_level_id"],
                "session_id": ids["session_id"],
                "rules": {
                    "pass_mark": 50,
                    "compulsory_subjects": ["Mathematics", "English"],
                    "minimum_additional": 3,
                    "total_minimum": 5,
                },
            },
        ).json()
        statuses = {d["admission_number"]: d["status"] for d in evaluation["decisions"]}
        assert statuses == {"JSS1/001": "Promoted", "JSS1/002": "NotPromoted"}
        assert evaluation["auto_apply_student_ids"] == [ids["student_ids"][0]]

        applied = client.post(
            f"{API}/promotion/apply",
            json={
                "student_ids": ids["student_ids"],
                "from_class": "JSS1",
                "to_class": "JSS2",
                "session_id": ids["session_id"],
            },
        ).json()
        assert applied["promoted"] == 2

        logs = client.get(f"{API}/audit-logs").json()
        actions = {item["action"] for item in logs["items"]}
        assert {"UPLOAD_COMPLETED", "POSITIONS_RECALCULATED", "STUDENTS_PROMOTED"} <= actions

    def test_partial_upload_reports_rows(self, client, setup_ids):
        content = (
            "admission_number,subject,ca_score,theory_score\n"
            "JSS1/001,Mathematics,25,35\n"
            "JSS1/404,Mathematics,25,35\n"
        )
        report = upload(client, "ca-theory", content, setup_ids).json()

        assert report["status"] == "partial"
        assert report["errors"] == [
            {
                "row": 3,
                "admission_number": "JSS1/404",
                "error_type": "UNKNOWN_STUDENT",
                "error": "Student JSS1/404 not found or inactive",
            }
        ]

    def test_missing_columns(self, client, setup_ids):
        response = upload(client, "exam", "admission_number,exam_score\nJSS1/001,20\n", setup_ids)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UPLOAD_FAILED"

    def test_wrong_extension(self, client, setup_ids):
        response = upload(client, "exam", "x", setup_ids, file_name="scores.txt")
        assert response.status_code == 400


class TestResultEndpoints:
    def test_manual_entry_and_patch(self, client, setup_ids):
        ids = setup_ids
        body = {
            "student_id": ids["student_ids"][0],
            "subject_id": ids["subject_ids"]["Physics"],
            "session_id": ids["session_id"],
            "term_id": ids["term_id"],
            "ca_score": 20,
        }
        created = client.post(f"{API}/results", json=body)
        assert created.status_code == 201
        result_id = created.json()["id"]
        assert created.json()["is_complete"] is False

        patched = client.patch(f"{API}/results/{result_id}", json={"theory_score": 30, "exam_score": 25})
        assert patched.status_code == 200
        assert patched.json()["grade"] == "A"
        assert patched.json()["ca_score"] == "20.00"

        again = client.post(f"{API}/results", json={**body, "ca_score": 10})
        assert again.status_code == 200
        assert again.json()["total_score"] == "65.0"

    def test_invalid_score(self, client, setup_ids):
        ids = setup_ids
        response = client.post(
            f"{API}/results",
            json={
                "student_id": ids["student_ids"][0],
                "subject_id": ids["subject_ids"]["Physics"],
                "session_id": ids["session_id"],
                "term_id": ids["term_id"],
                "theory_score": 45,
            },
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_VALUE"

    def test_empty_patch_rejected(self, client, setup_ids):
        response = client.patch(f"{API}/results/1", json={})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_delete_and_not_found(self, client, setup_ids):
        ids = setup_ids
        result_id = client.post(
            f"{API}/results",
            json={
                "student_id": ids["student_ids"][1],
                "subject_id": ids["subject_ids"]["English"],
                "session_id": ids["session_id"],
                "term_id": ids["term_id"],
                "exam_score": 15,
            },
        ).json()["id"]

        assert client.delete(f"{API}/results/{result_id}").status_code == 200
        response = client.get(f"{API}/results/{result_id}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_template_download(self, client, setup_ids):
        response = client.get(
            f"{API}/results/templates/exam",
            params={"class_level_id": setup_ids["class_level_id"]},
        )
        assert response.status_code == 200
        lines = response.text.splitlines()
        assert lines[0] == "admission_number,student_name,subject_name,exam_score"
        assert lines[1].startswith("#")
        assert "JSS1/001,Ada Obi,Biology," in lines

        xlsx = client.get(f"{API}/results/templates/ca_theory", params={"format": "xlsx"})
        assert xlsx.status_code == 200
        assert xlsx.content[:2] == b"PK"


class TestPromotionEndpoints:
    def test_rules_required(self, client, setup_ids):
        response = client.post(
            f"{API}/promotion/evaluate",
            json={"class_level_id": setup_ids["class_level_id"], "session_id": setup_ids["session_id"]},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "NO_RULE_SET"

    def test_invalid_mapping(self, client, setup_ids):
        response = client.post(
            f"{API}/promotion/apply",
            json={
                "student_ids": setup_ids["student_ids"],
                "from_class": "JSS1",
                "to_class": "JSS3",
                "session_id": setup_ids["session_id"],
            },
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
