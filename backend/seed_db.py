"""One-time DB setup: create tables and seed the demo quiz catalog."""
from cardquiz.db.session import Base, get_engine, get_session_factory
from cardquiz.db.models import (
    OptionTypeEnum,
    QuestionTypeEnum,
    Quiz,
    QuizLevelEnum,
    QuizQuestion,
    QuizStrategyEnum,
    User,
)
from cardquiz.core.security import hash_password

# (quiz id, title, category, level, strategy)
QUIZZES = [
    ("quiz1-easy", "Quiz 1", "Classification", QuizLevelEnum.EASY, QuizStrategyEnum.CLASSIFICATION),
    ("quiz1-med", "Quiz 1", "Classification", QuizLevelEnum.MEDIUM, QuizStrategyEnum.CLASSIFICATION),
    ("quiz1-hard", "Quiz 1", "Classification", QuizLevelEnum.HARD, QuizStrategyEnum.CLASSIFICATION),
    ("quiz2-easy", "Quiz 2", "Association", QuizLevelEnum.EASY, QuizStrategyEnum.ASSOCIATION),
    ("quiz2-easy-2", "Quiz 2", "Repetition", QuizLevelEnum.EASY, QuizStrategyEnum.REPETITION),
]

# quiz id → [(text, question type, media, option type, options, answer, hint, category)]
QUESTIONS = {
    "quiz1-easy": [
        ("Which one is a fruit?", "text", None, "image",
         ["apple.png", "car.png"], "apple.png", "You can eat it.", "Fruits"),
        ("Which one is an animal?", "text", None, "image",
         ["bus.png", "cat.png"], "cat.png", "It says meow.", "Animals"),
        ("Which one has wheels?", "text", None, "image",
         ["banana.png", "train.png"], "train.png", "It runs on rails.", "Vehicles"),
    ],
    "quiz1-med": [
        ("What is this?", "image", "dog.png", "text",
         ["Dog", "Cat", "Bus"], "Dog", "It barks.", "Animals"),
        ("What is this?", "image", "orange.png", "text",
         ["Apple", "Orange", "Banana"], "Orange", "It shares its name with a colour.", "Fruits"),
        ("What is this?", "image", "bus.png", "text",
         ["Car", "Train", "Bus"], "Bus", "Lots of people ride it to school.", "Vehicles"),
    ],
    "quiz1-hard": [
        ("Which one is NOT a fruit?", "text", None, "image",
         ["apple.png", "banana.png", "dog.png", "orange.png"], "dog.png", "It is a pet.", "Fruits"),
        ("Which one is NOT a vehicle?", "text", None, "image",
         ["car.png", "bus.png", "cat.png", "train.png"], "cat.png", "It has whiskers.", "Vehicles"),
    ],
    "quiz2-easy": [
        ("Listen. Which word did you hear?", "audio", "cat.mp3", "text",
         ["Cat", "Car"], "Cat", "It starts with a C and ends with a T.", "Animals"),
        ("Listen. Which word did you hear?", "audio", "apple.mp3", "image",
         ["apple.png", "banana.png"], "apple.png", "It is red and round.", "Fruits"),
    ],
    "quiz2-easy-2": [
        ("Listen. Which picture matches?", "audio", "dog.mp3", "image",
         ["dog.png", "cat.png"], "dog.png", None, "Animals"),
        ("Listen. Which picture matches?", "audio", "bus.mp3", "image",
         ["car.png", "bus.png"], "bus.png", "It is big and yellow.", "Vehicles"),
    ],
}

# 1. Create all tables
engine = get_engine()
Base.metadata.create_all(bind=engine)
print("✅ All tables created")

session_factory = get_session_factory()
with session_factory() as db:
    # 2. Demo learner
    demo = db.query(User).filter(User.email == "learner@example.com").first()
    if not demo:
        db.add(
            User(
                email="learner@example.com",
                hashed_password=hash_password("learner123"),
                full_name="Demo Learner",
            )
        )
        db.commit()
        print("✅ Created learner: learner@example.com / learner123")
    else:
        print("  Demo learner already exists")

    # 3. Quiz catalog
    for quiz_id, title, category, level, strategy in QUIZZES:
        if db.get(Quiz, quiz_id):
            print(f"  {quiz_id} already exists")
            continue
        db.add(Quiz(id=quiz_id, title=title, category=category, level=level, strategy=strategy))
        for text, qtype, media, otype, options, answer, hint, qcat in QUESTIONS[quiz_id]:
            db.add(
                QuizQuestion(
                    quiz_id=quiz_id,
                    question_text=text,
                    question_type=QuestionTypeEnum(qtype),
                    media_ref=media,
                    option_type=OptionTypeEnum(otype),
                    options=options,
                    correct_answer=answer,
                    hint=hint,
                    category=qcat,
                    level=level,
                )
            )
        db.commit()
        print(f"✅ Seeded {quiz_id} ({len(QUESTIONS[quiz_id])} questions)")

print("\n🎉 Database is ready to use!")
print("   Learner: learner@example.com / learner123")
