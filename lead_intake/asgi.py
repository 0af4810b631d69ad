# uvicorn lead_intake.asgi:app --reload
from lead_intake.core.config import Settings
from lead_intake.main import create_app

app = create_app(Settings.from_env())
