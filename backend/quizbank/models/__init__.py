from quizbank.models.tenant import Tenant
from quizbank.models.user import User
from quizbank.models.taxonomy import Theme, Subtheme, Group
from quizbank.models.question import Question
from quizbank.models.user_question_stat import UserQuestionStat
from quizbank.models.user_bookmark import UserBookmark
from quizbank.models.user_stats_counts import UserStatsCounts
from quizbank.models.quiz_creation_job import JobStatus, QuizCreationJob
from quizbank.models.custom_quiz import CustomQuiz
from quizbank.models.quiz_session import QuizSession

__all__ = [
    "Tenant",
    "User",
    "Theme",
    "Subtheme",
    "Group",
    "Question",
    "UserQuestionStat",
    "UserBookmark",
    "UserStatsCounts",
    "JobStatus",
    "QuizCreationJob",
    "CustomQuiz",
    "QuizSession",
]
