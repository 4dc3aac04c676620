"""
Invitation Mail

Sends invitation links with Flask-Mail. Delivery is best effort: a failed send is
logged and reported as False, the invite itself stays valid.
"""

import logging
from urllib.parse import urlencode

from flask import current_app
from flask_mail import Mail, Message


logger = logging.getLogger(__name__)

mail = Mail()


def build_invite_url(invite, provider='kakao'):
    """Login link that carries the invite token through the OAuth round trip"""
    token_param = 'invite_token' if invite.invite_type == 'admin' else 'member_invite_token'
    params = {'slug': invite.union.slug, token_param: invite.invite_token}
    base = current_app.config.get('APP_BASE_URL', '').rstrip('/')
    return f'{base}/auth/{provider}/login?{urlencode(params)}'


def send_invite_email(invite):
    if not invite.email:
        return False

    union_name = invite.union.name if invite.union else '조합'
    role_label = '관리자' if invite.invite_type == 'admin' else '조합원'
    invite_url = build_invite_url(invite)

    try:
        msg = Message(
            f'[{union_name}] {role_label} 초대',
            recipients=[invite.email],
            body=(
                f'{invite.name or ""}님, {union_name} {role_label}로 초대되었습니다.\n\n'
                f'아래 링크로 로그인하여 가입을 완료해주세요.\n{invite_url}\n\n'
                f'이 링크는 {invite.expires_at:%Y-%m-%d %H:%M} (UTC)까지 유효합니다.'
            ),
        )
        mail.send(msg)
        logger.info(f"Invite email sent to {invite.email} ({invite.invite_type})")
        return True
    except Exception as e:
        logger.error(f"Failed to send invite email to {invite.email}: {str(e)}")
        return False
