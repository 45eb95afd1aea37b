from datetime import datetime, timezone
from clicker import db, bcrypt
from flask_login import UserMixin

def utcnow():
    return datetime.now(timezone.utc)

class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(254), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(128), nullable=False)
    scores = db.relationship('ScoreRecord', back_populates='user', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
        }

class ScoreRecord(db.Model):
    """Outcome of one completed session. Rows are append-only."""
    __tablename__ = 'score_record'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    duration_seconds = db.Column(db.Float, nullable=False)
    score = db.Column(db.Integer, nullable=False)
    clicks_per_second = db.Column(db.Float, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    user = db.relationship('User', back_populates='scores')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'duration_seconds': self.duration_seconds,
            'score': self.score,
            'clicks_per_second': self.clicks_per_second,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }
