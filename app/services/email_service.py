"""
Email service for welcome credentials and password resets.
Uses Flask-Mail (SMTP; Resend relay when RESEND_API_KEY is set).
"""
import logging
from datetime import datetime
from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
        and cfg.get("MAIL_PASSWORD")
    )


def send_email(to: str, subject: str, html: str, text: str | None = None) -> bool:
    """
    Send an HTML email.

    Returns True when sent or when mail is disabled (no-op), False when
    the SMTP delivery failed. Never raises.
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Email skipped for {to}")
            logger.warning(f"[MAIL DISABLED] MAIL_SERVER={current_app.config.get('MAIL_SERVER')}")
            return True

        msg = Message(
            subject=subject,
            recipients=[to],
            body=text,
            html=html,
        )

        logger.info(f"[EMAIL] Sending via Flask-Mail (SMTP: {current_app.config.get('MAIL_SERVER')}:{current_app.config.get('MAIL_PORT')})...")
        mail.send(msg)
        logger.info(f"[EMAIL] ✓ Email sent to {to}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Failed to send email to {to}: {e}")
        return False


def first_name(nome: str | None) -> str:
    """First word of the name, or 'Marceneiro'."""
    parts = (nome or '').split()
    return parts[0] if parts else 'Marceneiro'


def send_welcome_email(email: str, password: str, nome: str | None = None) -> bool:
    """
    Send the access credentials of a freshly provisioned account.

    Args:
        email: Account email (login)
        password: Generated password, sent in clear once
        nome: Payer name from checkout (may be empty)
    """
    app_url = current_app.config.get('APP_URL', '')
    saudacao = first_name(nome)
    year = datetime.now().year

    html_body = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <style>
            body {{ font-family: Arial, sans-serif; background: #f5f5f5; margin: 0; padding: 0; }}
            .container {{ max-width: 560px; margin: 40px auto; background: #fff; border-radius: 16px; overflow: hidden; }}
            .header {{ background: #D42B2B; padding: 40px; text-align: center; }}
            .header h1 {{ color: #fff; margin: 0; font-size: 32px; }}
            .header p {{ color: rgba(255,255,255,0.8); margin: 8px 0 0; font-size: 14px; }}
            .body {{ padding: 40px; }}
            .credentials {{ background: #f8f8f8; border: 2px solid #eee; border-radius: 12px; padding: 24px; margin: 24px 0; }}
            .cred-label {{ font-size: 12px; font-weight: bold; color: #999; text-transform: uppercase; display: block; }}
            .cred-value {{ font-size: 18px; font-weight: bold; color: #111; font-family: monospace; display: block; margin-bottom: 16px; }}
            .btn {{
                display: block;
                background: #D42B2B;
                color: #fff !important;
                text-decoration: none;
                text-align: center;
                padding: 16px 32px;
                border-radius: 12px;
                font-weight: bold;
            }}
            .footer {{ padding: 24px 40px; border-top: 1px solid #eee; text-align: center; color: #999; font-size: 12px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>Fifty+</h1>
                <p>Propostas profissionais para marceneiros</p>
            </div>
            <div class="body">
                <p><strong>Bem-vindo ao Fifty+, {saudacao}! 🎉</strong></p>
                <p>Seu pagamento foi confirmado! Seu acesso está <strong>ativo agora mesmo</strong>.
                Aqui estão suas credenciais de acesso:</p>
                <div class="credentials">
                    <span class="cred-label">E-mail</span>
                    <span class="cred-value">{email}</span>
                    <span class="cred-label">Senha</span>
                    <span class="cred-value">{password}</span>
                </div>
                <a href="{app_url}" class="btn">ACESSAR O FIFTY+ AGORA →</a>
                <p style="font-size: 13px; color: #999;">
                    Guarde estas informações em local seguro. Você pode alterar a senha a qualquer momento.
                </p>
            </div>
            <div class="footer">© {year} Fifty+ • Suporte: contato@fiftymais.com.br</div>
        </div>
    </body>
    </html>
    """

    text_body = f"""
Bem-vindo ao Fifty+, {saudacao}!

Seu pagamento foi confirmado e seu acesso está ativo.

E-mail: {email}
Senha: {password}

Acesse: {app_url}
"""

    logger.info(f"[EMAIL] Sending welcome email to {email}")
    return send_email(email, '🎉 Seu acesso ao Fifty+ está pronto!', html_body, text_body)


def send_password_reset_email(email: str, reset_link: str) -> bool:
    """Send the password reset link (valid for 1 hour)."""
    html_body = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"></head>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <div style="max-width: 560px; margin: auto; padding: 20px;">
            <h2>Redefinição de senha</h2>
            <p>Recebemos um pedido para redefinir a senha da sua conta Fifty+.</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{reset_link}" style="background: #D42B2B; color: #fff; padding: 12px 30px;
                   text-decoration: none; border-radius: 8px;">Redefinir senha</a>
            </p>
            <p style="font-size: 13px; color: #666;">⏰ O link expira em 1 hora. Se você não pediu, ignore este e-mail.</p>
        </div>
    </body>
    </html>
    """

    text_body = f"""
Recebemos um pedido para redefinir a senha da sua conta Fifty+.

Redefina aqui (válido por 1 hora):
{reset_link}
"""
    return send_email(email, 'Redefinição de senha - Fifty+', html_body, text_body)
