"""Startup provisioning: the administrator account and a few sample exams."""

import logging

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from exam_portal.auth_utils import hash_password
from exam_portal.config import Settings
from exam_portal.models import ROLE_ADMIN, Exam, Question, User

logger = logging.getLogger(__name__)

SAMPLE_EXAMS = [
    {
        "title": "Photography Basics",
        "icon": "📷",
        "description": "Fundamental photography concepts",
        "time_limit": 1800,
        "points_correct": 1.0,
        "points_incorrect": 0.0,
        "questions": [
            ("What is the exposure triangle?", ["A tripod accessory", "The relation between ISO, aperture and shutter speed", "A composition rule", "The camera sensor"], 1),
            ("What does the aperture control?", ["Exposure time", "Sensor sensitivity", "Amount of light and depth of field", "Autofocus"], 2),
            ("A low f-number (e.g. f/1.8) means:", ["Less light, deeper focus", "More light, shallower depth of field", "A darker image", "A faster shutter"], 1),
            ("What is ISO?", ["An image file format", "The sensor's sensitivity to light", "The sensor size", "The focal length"], 1),
            ("What happens when ISO is raised a lot?", ["The image gets sharper", "More noise appears", "Colours saturate", "Depth of field shrinks"], 1),
        ],
    },
    {
        "title": "Studio Lighting",
        "icon": "💡",
        "description": "Lighting techniques for photography",
        "time_limit": 2400,
        "points_correct": 1.0,
        "points_incorrect": 0.25,
        "questions": [
            ("What is a softbox?", ["A gear case", "A modifier that softens flash light", "A tripod type", "A neutral density filter"], 1),
            ("Fill light is used to:", ["Be the main light", "Reduce shadows from the key light", "Create special effects", "Light the background"], 1),
            ("Tungsten light has a colour temperature of about:", ["2700-3200K", "5500K", "6500K", "10000K"], 0),
            ("A snoot is used to:", ["Soften light", "Concentrate light into a narrow beam", "Spread light everywhere", "Change light colour"], 1),
        ],
    },
]


def ensure_admin(session: Session, settings: Settings) -> User:
    """Create the administrator identity once; later startups leave it untouched."""
    admin = session.exec(select(User).where(User.code == settings.admin_code.strip().upper())).first()
    if admin:
        return admin
    admin = User(
        code=settings.admin_code.strip().upper(),
        name=settings.admin_name,
        password_hash=hash_password(settings.admin_password),
        role=ROLE_ADMIN,
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)
    logger.info("Provisioned administrator account %s", admin.code)
    return admin


def seed_sample_exams(session: Session, admin: User) -> int:
    """Insert the sample exams when the exam table is empty. Returns how many were added."""
    if session.exec(select(Exam)).first():
        return 0
    for sample in SAMPLE_EXAMS:
        exam = Exam(
            title=sample["title"],
            icon=sample["icon"],
            description=sample["description"],
            time_limit=sample["time_limit"],
            points_correct=sample["points_correct"],
            points_incorrect=sample["points_incorrect"],
            max_attempts=2,
            shuffle_questions=True,
            created_by=admin.id,
        )
        session.add(exam)
        session.flush()
        for index, (text, options, correct) in enumerate(sample["questions"]):
            session.add(
                Question(
                    exam_id=exam.id,
                    question_text=text,
                    option_a=options[0],
                    option_b=options[1],
                    option_c=options[2],
                    option_d=options[3],
                    correct_option=correct,
                    order_num=index,
                )
            )
    session.commit()
    logger.info("Seeded %s sample exams", len(SAMPLE_EXAMS))
    return len(SAMPLE_EXAMS)


def provision(engine: Engine, settings: Settings) -> None:
    with Session(engine) as session:
        admin = ensure_admin(session, settings)
        if settings.seed_sample_exams:
            seed_sample_exams(session, admin)
