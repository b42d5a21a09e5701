from flask import has_request_context, request


class AuditLogger:
    """Log important actions for audit trail"""

    @staticmethod
    def log_action(
        user_id: str,
        action: str,
        entity_type: str = None,
        entity_id: str = None,
        description: str = None,
        changes: dict = None,
        ip_address: str = None,
        user_agent: str = None,
        commit: bool = True
    ):
        """
        Log an action to audit trail.

        With commit=False the row joins the caller's transaction and is written
        or rolled back together with the change it describes.
        """
        from washly.models import AuditLog
        from washly.extensions import db

        if has_request_context():
            ip_address = ip_address or request.remote_addr
            user_agent = user_agent or request.headers.get('User-Agent', '')[:500]

        log = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent
        )

        db.session.add(log)
        if commit:
            db.session.commit()
        return log
