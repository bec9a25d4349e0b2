from quizbank.models import UserBookmark, UserQuestionStat, UserStatsCounts
from quizbank.services import questions_service, user_stats_service


def test_theme_change_propagates_to_stats_bookmarks_and_counts(db, writer, store, taxonomy, make_question, tenant):
    t1, t2 = taxonomy["T1"], taxonomy["T2"]
    q = make_question(t1)
    user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=False)
    user_stats_service.toggle_bookmark(db, writer, user_id=1, question_id=q.id)

    _, summary = questions_service.update_question(db, writer, q.id, theme_id=t2.id)

    assert summary == {"stats_updated": 1, "bookmarks_updated": 1, "users_updated": 1}
    stat = db.query(UserQuestionStat).filter(UserQuestionStat.question_id == q.id).one()
    bm = db.query(UserBookmark).filter(UserBookmark.question_id == q.id).one()
    assert stat.theme_id == t2.id
    assert bm.theme_id == t2.id

    counts = db.query(UserStatsCounts).filter(UserStatsCounts.user_id == 1).one()
    for attr in ("answered_by_theme", "incorrect_by_theme", "bookmarked_by_theme"):
        m = getattr(counts, attr)
        assert m.get(str(t1.id)) == 0
        assert m.get(str(t2.id)) == 1
    assert counts.total_answered == 1

    # per-user aggregates followed the patched copies
    assert store.count("incorrect_by_theme_by_user", f"1:{t1.id}") == 0
    assert store.count("incorrect_by_theme_by_user", f"1:{t2.id}") == 1


def test_subtheme_added_and_removed(db, writer, taxonomy, make_question):
    t1, s1, s2 = taxonomy["T1"], taxonomy["S1"], taxonomy["S2"]
    q = make_question(t1)
    user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=True)

    questions_service.update_question(db, writer, q.id, subtheme_id=s1.id)
    counts = db.query(UserStatsCounts).filter(UserStatsCounts.user_id == 1).one()
    assert counts.answered_by_subtheme == {str(s1.id): 1}
    assert counts.incorrect_by_subtheme == {}

    questions_service.update_question(db, writer, q.id, subtheme_id=s2.id)
    questions_service.update_question(db, writer, q.id, subtheme_id=None)
    counts = db.query(UserStatsCounts).filter(UserStatsCounts.user_id == 1).one()
    assert counts.answered_by_subtheme == {str(s1.id): 0, str(s2.id): 0}


def test_user_without_counts_row_is_skipped(db, writer, taxonomy, make_question, tenant):
    q = make_question(taxonomy["T1"])
    writer.insert(
        UserQuestionStat(
            user_id=2,
            question_id=q.id,
            tenant_id=tenant.id,
            has_answered=True,
            is_incorrect=False,
            theme_id=q.theme_id,
        )
    )
    db.commit()

    _, summary = questions_service.update_question(db, writer, q.id, theme_id=taxonomy["T2"].id)

    assert summary["stats_updated"] == 1
    assert summary["users_updated"] == 0
    assert db.query(UserStatsCounts).count() == 0


def test_title_only_update_skips_sync(db, writer, taxonomy, make_question):
    q = make_question(taxonomy["T1"])
    user_stats_service.record_answer(db, writer, user_id=1, question_id=q.id, is_correct=True)

    row, summary = questions_service.update_question(db, writer, q.id, title="Fratura de  Colles")

    assert summary == {"stats_updated": 0, "bookmarks_updated": 0, "users_updated": 0}
    assert row.normalized_title == "fratura de colles"
