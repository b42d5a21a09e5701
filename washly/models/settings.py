from datetime import datetime, timezone
import json
from washly.extensions import db

class Settings(db.Model):
    """Admin-owned key/value configuration. Keys are stable hand-assigned ids."""
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    value = db.Column(db.Text)
    data_type = db.Column(db.String(20), default='string')  # string, int, float, bool, json
    description = db.Column(db.String(500))

    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @staticmethod
    def find_many(keys=None):
        """Raw rows as a {key: value} map"""
        query = Settings.query
        if keys:
            query = query.filter(Settings.key.in_(list(keys)))
        return {row.key: row.value for row in query.all()}

    @staticmethod
    def set_value(key, value, data_type='string', description=None, commit=True):
        setting = Settings.query.filter_by(key=key).first()

        if data_type == 'json':
            value = json.dumps(value)
        elif data_type == 'bool':
            value = 'true' if value else 'false'
        else:
            value = str(value)

        if setting:
            setting.value = value
            setting.data_type = data_type
            if description:
                setting.description = description
        else:
            setting = Settings(
                key=key,
                value=value,
                data_type=data_type,
                description=description
            )
            db.session.add(setting)

        if commit:
            db.session.commit()
        return setting
