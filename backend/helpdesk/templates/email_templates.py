"""
Email Templates - Approval notification emails

Every template takes the outbox payload and returns ``{"subject", "body"}``.
Payload values are user input (ticket subjects, comments) and are escaped
before they reach the HTML body.
"""
from html import escape
from typing import Any, Callable, Dict, Optional

from ..domain.enums import EmailTemplateKey


# =============================================================================
# Building blocks
# =============================================================================

def get_base_template(
    content: str,
    app_name: str,
    action_button_text: Optional[str] = None,
    action_button_url: Optional[str] = None,
    accent_color: str = "#3B82F6"
) -> str:
    """Table-based layout that renders the same in Outlook and web clients"""
    button_html = ""
    if action_button_text and action_button_url:
        button_html = f'''
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px 0;">
            <tr>
                <td style="background-color: {accent_color}; padding: 12px 24px;">
                    <a href="{escape(action_button_url)}" style="color: #ffffff; font-family: Arial, sans-serif; font-size: 14px; font-weight: bold; text-decoration: none;">{escape(action_button_text)}</a>
                </td>
            </tr>
        </table>
        '''

    return f'''<!DOCTYPE html>
<html>
<body style="margin: 0; padding: 0; background-color: #F3F4F6;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
        <tr>
            <td align="center" style="padding: 24px 12px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="background-color: #ffffff;">
                    <tr>
                        <td style="background-color: {accent_color}; padding: 20px 32px; color: #ffffff; font-family: Arial, sans-serif; font-size: 18px; font-weight: bold;">
                            {escape(app_name)}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 32px; font-family: Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #374151;">
                            {content}
                            {button_html}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 16px 32px; border-top: 1px solid #E5E7EB; color: #9CA3AF; font-family: Arial, sans-serif; font-size: 12px;">
                            This is an automated notification. Please do not reply to this email.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>'''


def get_info_card(payload: Dict[str, Any], extra_fields: Optional[Dict[str, Any]] = None) -> str:
    """Ticket details table"""
    fields = {
        "Ticket Number": payload.get("ticket_number", ""),
        "Subject": payload.get("subject", ""),
        "Requester": payload.get("requester_name", ""),
        "Priority": str(payload.get("priority", "")).capitalize(),
        "Status": str(payload.get("status", "")).replace("_", " ").capitalize(),
    }
    fields.update(extra_fields or {})

    rows = "".join(
        f'''
        <tr>
            <td style="padding: 8px 16px; color: #6B7280; width: 140px; border-bottom: 1px solid #E5E7EB;">{escape(label)}</td>
            <td style="padding: 8px 16px; color: #111827; font-weight: bold; border-bottom: 1px solid #E5E7EB;">{escape(str(value))}</td>
        </tr>'''
        for label, value in fields.items()
        if value
    )
    return f'''
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="margin: 16px 0; border: 1px solid #E5E7EB; background-color: #F9FAFB; font-family: Arial, sans-serif; font-size: 13px;">
        {rows}
    </table>
    '''


def _ticket_url(payload: Dict[str, Any], app_url: str) -> str:
    return f"{app_url.rstrip('/')}/tickets/{payload.get('ticket_id', '')}"


# =============================================================================
# Templates
# =============================================================================

def get_approval_requested_template(payload: Dict[str, Any], app_url: str, app_name: str) -> Dict[str, str]:
    """Template: Approval Requested - To the LM or HOD approver"""
    level = payload.get("approval_level", "Line Manager")
    approver_name = payload.get("approver_name", "")
    greeting = f"Hello {escape(approver_name)}," if approver_name else "Hello,"

    hod_note = ""
    if payload.get("is_hod"):
        hod_note = '''
        <p style="margin: 0 0 16px 0;"><strong>Note:</strong> This ticket has already been approved
        by the Line Manager and now requires your approval.</p>
        '''

    content = f'''
    <p style="margin: 0 0 16px 0;">{greeting}</p>
    <p style="margin: 0 0 16px 0;">A ticket requires your <strong>{escape(level)}</strong> approval:</p>
    {get_info_card(payload)}
    {hod_note}
    <p style="margin: 0;">Please review the ticket details and approve or reject it.</p>
    '''
    return {
        "subject": f"Approval Required: {level} - Ticket #{payload.get('ticket_number', '')}",
        "body": get_base_template(
            content,
            app_name,
            action_button_text="View & Approve Ticket",
            action_button_url=_ticket_url(payload, app_url),
            accent_color="#DC2626" if payload.get("is_hod") else "#2563EB"
        ),
    }


def get_approval_approved_template(payload: Dict[str, Any], app_url: str, app_name: str) -> Dict[str, str]:
    """Template: Approval Approved - To the requester"""
    level = payload.get("approval_level", "Line Manager")
    approver_name = payload.get("approver_name", "Your approver")
    extra = {"Approved by": approver_name}
    if payload.get("comments"):
        extra["Comments"] = payload["comments"]

    content = f'''
    <p style="margin: 0 0 16px 0;">Hello {escape(payload.get("requester_name", ""))},</p>
    <p style="margin: 0 0 16px 0;">Your ticket has been approved at <strong>{escape(level)}</strong> level.</p>
    {get_info_card(payload, extra)}
    '''
    return {
        "subject": f"Approved: {level} - Ticket #{payload.get('ticket_number', '')}",
        "body": get_base_template(
            content,
            app_name,
            action_button_text="View Ticket",
            action_button_url=_ticket_url(payload, app_url),
            accent_color="#059669"
        ),
    }


def get_approval_rejected_template(payload: Dict[str, Any], app_url: str, app_name: str) -> Dict[str, str]:
    """Template: Approval Rejected - To the requester"""
    level = payload.get("approval_level", "Line Manager")
    extra = {
        "Rejected by": payload.get("approver_name", ""),
        "Reason": payload.get("comments", ""),
    }

    content = f'''
    <p style="margin: 0 0 16px 0;">Hello {escape(payload.get("requester_name", ""))},</p>
    <p style="margin: 0 0 16px 0;">Your ticket was rejected at <strong>{escape(level)}</strong> level
    and has been cancelled.</p>
    {get_info_card(payload, extra)}
    <p style="margin: 0;">You can address the reason above and resubmit the ticket.</p>
    '''
    return {
        "subject": f"Rejected: {level} - Ticket #{payload.get('ticket_number', '')}",
        "body": get_base_template(
            content,
            app_name,
            action_button_text="View Ticket",
            action_button_url=_ticket_url(payload, app_url),
            accent_color="#DC2626"
        ),
    }


TEMPLATE_REGISTRY: Dict[EmailTemplateKey, Callable[[Dict[str, Any], str, str], Dict[str, str]]] = {
    EmailTemplateKey.APPROVAL_REQUESTED: get_approval_requested_template,
    EmailTemplateKey.APPROVAL_APPROVED: get_approval_approved_template,
    EmailTemplateKey.APPROVAL_REJECTED: get_approval_rejected_template,
}


def get_email_template(
    template_key: str,
    payload: Dict[str, Any],
    app_url: str = "",
    app_name: str = "Helpdesk"
) -> Dict[str, str]:
    """
    Render an email by template key

    Raises:
        ValueError: unknown template key
    """
    template_func = TEMPLATE_REGISTRY[EmailTemplateKey(template_key)]
    return template_func(payload, app_url, app_name)
