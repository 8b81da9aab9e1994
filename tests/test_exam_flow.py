from models import db, Exam, ExamAttempt, ExamDraft
from tests.conftest import create_group, group_id, general_exam_ids


def _join_general(app, client):
    gid = group_id(app, "General")
    client.post(f"/groups/{gid}/join", data={"password": "general"})
    return gid


def _start(client, eid):
    resp = client.post(f"/exams/{eid}/start")
    assert resp.status_code == 302
    return int(resp.headers["Location"].rstrip("/").rsplit("/", 1)[-1])


class TestExamEditor:
    def test_draft_then_publish(self, app, teacher_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        url = f"/groups/{gid}/exams/new"

        teacher_client.post(url, data={
            "action": "add_question", "title": "Optics quiz", "type": "MCQ",
            "text": "Speed of light?", "option": ["3e8 m/s", "", "340 m/s", ""], "correct": "2",
        })
        teacher_client.post(url, data={
            "action": "add_question", "type": "TF", "text": "Light is a wave.", "correct": "0",
        })
        page = teacher_client.get(url).get_data(as_text=True)
        assert "Speed of light?" in page and "Publish exam (2)" in page

        resp = teacher_client.post(url, data={"action": "publish"})
        assert resp.headers["Location"] == f"/groups/{gid}"
        with app.app_context():
            exam = Exam.query.filter_by(group_id=gid).one()
            assert exam.title == "Optics quiz"
            first, second = exam.questions
            assert first.options == ["3e8 m/s", "340 m/s"]
            assert first.correct_answer == 1
            assert second.type == "TF" and second.options == ["True", "False"]

    def test_invalid_question_is_not_added(self, app, teacher_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        url = f"/groups/{gid}/exams/new"
        teacher_client.post(url, data={
            "action": "add_question", "title": "T", "text": "Only one option",
            "option": ["A", "", "", ""], "correct": "0",
        })
        page = teacher_client.get(url).get_data(as_text=True)
        assert "Publish exam (0)" in page

    def test_publish_requires_questions(self, app, teacher_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        resp = teacher_client.post(f"/groups/{gid}/exams/new", data={"action": "publish", "title": "Empty"})
        assert resp.status_code == 400
        with app.app_context():
            assert Exam.query.filter_by(group_id=gid).count() == 0

    def test_remove_and_discard(self, app, teacher_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        url = f"/groups/{gid}/exams/new"
        teacher_client.post(url, data={
            "action": "add_question", "title": "Draft", "text": "Q1",
            "option": ["a", "b"], "correct": "1",
        })
        teacher_client.post(url, data={"action": "remove_question", "index": "0"})
        assert "Publish exam (0)" in teacher_client.get(url).get_data(as_text=True)
        teacher_client.post(url, data={"action": "discard"})
        assert 'value="Draft"' not in teacher_client.get(url).get_data(as_text=True)

    def test_long_draft_stays_out_of_the_cookie(self, app, teacher_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        url = f"/groups/{gid}/exams/new"
        for n in range(20):
            teacher_client.post(url, data={
                "action": "add_question", "title": "Long exam",
                "text": f"Question {n}: " + "which statement about refraction is accurate here? " * 2,
                "option": [f"Option {n}-{k} " + "x" * 20 for k in range(4)], "correct": "3",
            })

        assert len(teacher_client.get_cookie("session").value) < 4093
        with teacher_client.session_transaction() as sess:
            assert not [k for k in sess if "draft" in k]
        with app.app_context():
            assert len(ExamDraft.query.filter_by(group_id=gid).one().questions) == 20

        teacher_client.post(url, data={"action": "publish"})
        with app.app_context():
            assert len(Exam.query.filter_by(group_id=gid).one().questions) == 20
            assert ExamDraft.query.count() == 0

    def test_drafts_are_per_manager(self, app, teacher_client, admin_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        url = f"/groups/{gid}/exams/new"
        teacher_client.post(url, data={
            "action": "add_question", "title": "Mine", "text": "Q1",
            "option": ["a", "b"], "correct": "0",
        })
        assert 'value="Mine"' not in admin_client.get(url).get_data(as_text=True)
        assert 'value="Mine"' in teacher_client.get(url).get_data(as_text=True)

    def test_six_options(self, app, teacher_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        url = f"/groups/{gid}/exams/new"
        assert 'placeholder="Option F"' in teacher_client.get(url).get_data(as_text=True)
        teacher_client.post(url, data={
            "action": "add_question", "title": "Wide", "text": "Pick F",
            "option": ["a", "b", "c", "d", "e", "f"], "correct": "5",
        })
        with app.app_context():
            q = ExamDraft.query.one().questions[0]
            assert len(q["options"]) == 6 and q["correct_answer"] == 5

    def test_delete_exam(self, app, admin_client):
        eid = general_exam_ids(app)[0]
        assert admin_client.post(f"/exams/{eid}/delete").status_code == 302
        with app.app_context():
            assert db.session.get(Exam, eid) is None


class TestTakingExam:
    def test_non_member_is_sent_to_join(self, app, student_client):
        eid = general_exam_ids(app)[0]
        gid = group_id(app, "General")
        resp = student_client.post(f"/exams/{eid}/start")
        assert resp.headers["Location"] == f"/groups/{gid}/join"

    def test_full_run_scores_answers(self, app, student_client):
        _join_general(app, student_client)
        science = general_exam_ids(app)[0]
        aid = _start(student_client, science)

        page = student_client.get(f"/attempts/{aid}").get_data(as_text=True)
        assert "Question 1 of 3" in page and "powerhouse of the cell" in page

        student_client.post(f"/attempts/{aid}", data={"answer": "1"})
        student_client.post(f"/attempts/{aid}", data={"answer": "0"})  # wrong
        resp = student_client.post(f"/attempts/{aid}", data={"answer": "0"})
        assert resp.headers["Location"] == f"/attempts/{aid}/result"

        with app.app_context():
            attempt = db.session.get(ExamAttempt, aid)
            assert (attempt.score, attempt.total, attempt.percent) == (2, 3, 67)
            assert attempt.is_done
            assert len(attempt.answers) == 3

        result = student_client.get(f"/attempts/{aid}/result").get_data(as_text=True)
        assert "2 / 3" in result
        # a finished attempt cannot be answered again
        assert student_client.post(f"/attempts/{aid}", data={"answer": "1"}).headers["Location"] == f"/attempts/{aid}/result"

    def test_invalid_answer_does_not_advance(self, app, student_client):
        _join_general(app, student_client)
        aid = _start(student_client, general_exam_ids(app)[0])
        student_client.post(f"/attempts/{aid}", data={"answer": "9"})
        student_client.post(f"/attempts/{aid}", data={})
        with app.app_context():
            assert db.session.get(ExamAttempt, aid).cursor == 0

    def test_result_before_finish_redirects(self, app, student_client):
        _join_general(app, student_client)
        aid = _start(student_client, general_exam_ids(app)[0])
        assert student_client.get(f"/attempts/{aid}/result").headers["Location"] == f"/attempts/{aid}"

    def test_other_users_attempt_is_forbidden(self, app, student_client, admin_client):
        _join_general(app, student_client)
        aid = _start(student_client, general_exam_ids(app)[0])
        assert admin_client.get(f"/attempts/{aid}").status_code == 403
        assert admin_client.post(f"/api/attempts/{aid}/warnings").status_code == 403

    def test_empty_exam_cannot_start(self, app, admin_client):
        gid = group_id(app, "General")
        with app.app_context():
            db.session.add(Exam(group_id=gid, title="Nothing here"))
            db.session.commit()
            eid = Exam.query.filter_by(title="Nothing here").one().id
        resp = admin_client.post(f"/exams/{eid}/start")
        assert resp.headers["Location"] == f"/groups/{gid}"
        with app.app_context():
            assert ExamAttempt.query.count() == 0


class TestFocusWarnings:
    def test_counts_while_running(self, app, student_client):
        _join_general(app, student_client)
        aid = _start(student_client, general_exam_ids(app)[1])
        assert student_client.post(f"/api/attempts/{aid}/warnings").json == {"warnings": 1, "counted": True}
        assert student_client.post(f"/api/attempts/{aid}/warnings").json == {"warnings": 2, "counted": True}

    def test_not_counted_after_finish(self, app, student_client):
        _join_general(app, student_client)
        aid = _start(student_client, general_exam_ids(app)[1])
        student_client.post(f"/attempts/{aid}", data={"answer": "2"})
        student_client.post(f"/attempts/{aid}", data={"answer": "2"})
        resp = student_client.post(f"/api/attempts/{aid}/warnings")
        assert resp.json == {"warnings": 0, "counted": False}
        with app.app_context():
            assert db.session.get(ExamAttempt, aid).score == 2

    def test_unknown_attempt(self, student_client):
        assert student_client.post("/api/attempts/999/warnings").status_code == 404
