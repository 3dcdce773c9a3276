"""Outgoing email through Resend"""
import html
import logging
import os

import resend

logger = logging.getLogger(__name__)

resend.api_key = os.environ.get('RESEND_API_KEY')
EMAIL_FROM = os.environ.get('EMAIL_FROM', 'TheodoraQ <noreply@theodoraq.app>')


class EmailServiceError(RuntimeError):
    """Raised when an email could not be handed to the provider"""


def _send(params: dict):
    if not resend.api_key:
        raise EmailServiceError("Email service not configured")
    try:
        return resend.Emails.send(params)
    except Exception as e:
        logger.error(f"Failed to send email to {params.get('to')}: {str(e)}")
        raise EmailServiceError(f"Failed to send email: {str(e)}")


async def send_class_invitation(email: str, name: str, class_info: dict, invite_code: str, admin_name: str):
    """Invite a candidate to join a class with its invite code"""
    frontend_url = os.environ.get('FRONTEND_URL', '').rstrip('/')
    join_url = f"{frontend_url}/candidate/join?code={invite_code}" if frontend_url else None
    
    title = html.escape(class_info.get("title") or "")
    course_code = html.escape(class_info.get("course_code") or "")
    description = html.escape(class_info.get("description") or "")
    
    join_block = ""
    if join_url:
        join_block = f"""
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{join_url}" style="background-color: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">Join Class</a>
                </div>"""
    
    params = {
        "from": EMAIL_FROM,
        "to": [email],
        "subject": f"You're invited to join {class_info.get('title')} ({class_info.get('course_code')})",
        "html": f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #2563eb;">Class Invitation</h2>
                <p>Hi {html.escape(name)},</p>
                <p>{html.escape(admin_name)} has invited you to join <strong>{title}</strong> ({course_code}).</p>
                {f'<p style="color: #444;">{description}</p>' if description else ''}
                <p>Use this invite code after signing in:</p>
                <p style="font-size: 22px; font-weight: bold; letter-spacing: 2px; text-align: center;">{html.escape(invite_code)}</p>{join_block}
                <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
                <p style="color: #666; font-size: 12px;">TheodoraQ Assessment Platform</p>
            </div>
            """
    }
    
    response = _send(params)
    logger.info(f"Sent class invitation for {class_info.get('course_code')} to {email}")
    return response


async def send_reset_email(email: str, token: str, name: str):
    """Send password reset email"""
    frontend_url = os.environ.get('FRONTEND_URL')
    if not frontend_url:
        raise EmailServiceError("FRONTEND_URL not configured")
    reset_url = f"{frontend_url.rstrip('/')}/reset-password?token={token}"
    
    params = {
        "from": EMAIL_FROM,
        "to": [email],
        "subject": "Reset Your TheodoraQ Password",
        "html": f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #2563eb;">Reset Your Password</h2>
                <p>Hi {html.escape(name)},</p>
                <p>You requested to reset your password. Click the button below to set a new password:</p>
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{reset_url}" style="background-color: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">Reset Password</a>
                </div>
                <p>If the button doesn't work, copy and paste this link into your browser:</p>
                <p style="word-break: break-all; color: #666;">{reset_url}</p>
                <p>This link will expire in 1 hour.</p>
                <p>If you didn't request this password reset, please ignore this email.</p>
            </div>
            """
    }
    
    return _send(params)
