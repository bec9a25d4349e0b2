from quizbank.db.base_class import Base

# Import every model so Base.metadata carries all tables (alembic + tests)
from quizbank.models.tenant import Tenant
from quizbank.models.user import User
from quizbank.models.taxonomy import Theme, Subtheme, Group
from quizbank.models.question import Question
from quizbank.models.user_question_stat import UserQuestionStat
from quizbank.models.user_bookmark import UserBookmark
from quizbank.models.user_stats_counts import UserStatsCounts
from quizbank.models.quiz_creation_job import QuizCreationJob
from quizbank.models.custom_quiz import CustomQuiz
from quizbank.models.quiz_session import QuizSession
