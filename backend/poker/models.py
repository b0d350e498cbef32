from poker import db
import time

PARTICIPANT_NAME_LENGTH = 64


def now_ms():
    return int(time.time() * 1000)


class Participant(db.Model):
    __tablename__ = 'participant'
    session_id = db.Column(db.String(16), db.ForeignKey('planning_session.id', ondelete='CASCADE'), primary_key=True)
    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(PARTICIPANT_NAME_LENGTH), nullable=False)
    vote = db.Column(db.String(16), nullable=True)
    # Legacy per-participant reveal flag; the session-level flag is authoritative
    is_revealed = db.Column(db.Boolean, default=False, nullable=False)
    avatar = db.Column(db.String(32), nullable=True)
    joined_at = db.Column(db.BigInteger, default=now_ms, nullable=False)
    session = db.relationship('PlanningSession', back_populates='participants')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'vote': self.vote,
            'is_revealed': bool(self.is_revealed),
            'avatar': self.avatar,
        }


class PlanningSession(db.Model):
    __tablename__ = 'planning_session'
    id = db.Column(db.String(16), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    creator = db.Column(db.String(36), nullable=False)
    is_revealed = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.BigInteger, default=now_ms, nullable=False, index=True)
    participants = db.relationship(
        'Participant',
        back_populates='session',
        cascade='all, delete-orphan',
        order_by='Participant.joined_at',
    )

    def participant(self, participant_id):
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'participants': {p.id: p.to_dict() for p in self.participants},
            'creator': self.creator,
            'is_revealed': bool(self.is_revealed),
            'created_at': self.created_at,
        }
