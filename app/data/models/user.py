from sqlalchemy import Column, String
from app.data.database import Base

class UserModel(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    phone = Column(String, nullable=True)
