import pytest
from fastapi import HTTPException

from quizbank.models import CustomQuiz, UserBookmark, UserQuestionStat
from quizbank.services import aggregate_queries, questions_service, user_stats_service


def test_record_answer_creates_stat_and_counts(db, writer, store, taxonomy, make_question):
    t1, s1 = taxonomy["T1"], taxonomy["S1"]
    q = make_question(t1, s1)

    stat = user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=False)

    assert stat.has_answered is True and stat.is_incorrect is True
    assert (stat.theme_id, stat.subtheme_id, stat.group_id) == (t1.id, s1.id, None)
    counts = user_stats_service.get_user_counts(db, 1)
    assert counts["total_answered"] == 1
    assert counts["total_incorrect"] == 1
    assert counts["by_theme"]["incorrect"] == {str(t1.id): 1}
    assert counts["by_subtheme"]["answered"] == {str(s1.id): 1}
    assert counts["last_updated"] is not None
    assert aggregate_queries.get_user_mode_counts(store, 1) == {"answered": 1, "incorrect": 1, "bookmarked": 0}


def test_reanswer_keeps_one_row_and_flips_incorrect(db, writer, store, taxonomy, make_question):
    q = make_question(taxonomy["T1"])
    user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=False)
    user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=True)

    assert db.query(UserQuestionStat).filter(UserQuestionStat.user_id == 1).count() == 1
    counts = user_stats_service.get_user_counts(db, 1)
    assert counts["total_answered"] == 1
    assert counts["total_incorrect"] == 0
    assert counts["by_theme"]["incorrect"] == {str(taxonomy["T1"].id): 0}
    assert aggregate_queries.get_user_mode_counts(store, 1)["incorrect"] == 0
    assert aggregate_queries.get_user_mode_counts(store, 1)["answered"] == 1


def test_toggle_bookmark_on_and_off(db, writer, store, taxonomy, make_question):
    q = make_question(taxonomy["T2"], taxonomy["S3"])

    assert user_stats_service.toggle_bookmark(db, writer, user_id=1, question_id=q.id) == {
        "question_id": q.id,
        "bookmarked": True,
    }
    assert store.count("bookmarked_by_subtheme_by_user", f"1:{taxonomy['S3'].id}") == 1
    assert user_stats_service.get_user_counts(db, 1)["total_bookmarked"] == 1

    assert user_stats_service.toggle_bookmark(db, writer, user_id=1, question_id=q.id)["bookmarked"] is False
    assert db.query(UserBookmark).count() == 0
    assert aggregate_queries.get_user_mode_counts(store, 1)["bookmarked"] == 0
    assert user_stats_service.get_user_counts(db, 1)["total_bookmarked"] == 0


def test_answer_for_unknown_question_is_404(db, writer, tenant):
    with pytest.raises(HTTPException) as e:
        user_stats_service.record_answer(db, writer, user_id=1, question_id=404, is_correct=True)
    assert e.value.status_code == 404


def test_counts_for_user_without_activity_are_zero(db, tenant):
    counts = user_stats_service.get_user_counts(db, 2)
    assert counts["total_answered"] == 0
    assert counts["last_updated"] is None


def test_delete_question_cascades(db, writer, store, taxonomy, make_question, tenant):
    q = make_question(taxonomy["T1"], taxonomy["S1"], taxonomy["G1"])
    keep = make_question(taxonomy["T1"])
    user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=False)
    user_stats_service.toggle_bookmark(db, writer, user_id=1, question_id=q.id)
    quiz = CustomQuiz(
        tenant_id=tenant.id,
        author_id=1,
        name="Simulado",
        description="",
        question_ids=[q.id, keep.id],
        test_mode="study",
        question_mode="all",
    )
    db.add(quiz)
    db.commit()

    out = questions_service.delete_question(db, writer, q.id)

    assert out == {"quizzes_updated": 1, "stats_deleted": 1, "bookmarks_deleted": 1}
    db.refresh(quiz)
    assert quiz.question_ids == [keep.id]
    assert aggregate_queries.get_total_question_count(store, tenant.id) == 1
    assert aggregate_queries.get_question_count_by_group(store, tenant.id, taxonomy["G1"].id) == 0
    assert aggregate_queries.get_user_mode_counts(store, 1) == {"answered": 0, "incorrect": 0, "bookmarked": 0}
    counts = user_stats_service.get_user_counts(db, 1)
    assert (counts["total_answered"], counts["total_incorrect"], counts["total_bookmarked"]) == (0, 0, 0)
    assert counts["by_group"]["answered"] == {str(taxonomy["G1"].id): 0}


def test_create_question_rejects_foreign_subtheme(db, writer, taxonomy, tenant):
    with pytest.raises(HTTPException) as e:
        questions_service.create_question(
            db,
            writer,
            tenant_id=tenant.id,
            theme_id=taxonomy["T2"].id,
            subtheme_id=taxonomy["S1"].id,
            title="Displasia do quadril",
        )
    assert e.value.status_code == 400
