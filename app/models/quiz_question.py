import uuid

from sqlalchemy import Column, Integer, Text, UniqueConstraint, Uuid

from app.database import Base, JSONType


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (UniqueConstraint("tenant_id", "order_index", name="uq_quiz_questions_tenant_order"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    order_index = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    question_type = Column(Text, nullable=False, default="quiz")  # quiz, personal, preference
    options = Column(JSONType, nullable=False, default=list)
    correct_answer = Column(Text)
    points = Column(Integer, nullable=False, default=10)
