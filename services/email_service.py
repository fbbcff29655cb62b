# services/email_service.py

import logging
from typing import Optional
from fastapi import HTTPException, status

from config import (
    EMAIL_SERVICE_TYPE,
    SENDER_EMAIL_ADDRESS,
    AWS_SES_REGION,
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    FRONTEND_URL,
    OTP_EXPIRE_MINUTES,
    RESET_TOKEN_EXPIRE_MINUTES,
)

logger = logging.getLogger(__name__)

APP_NAME = "Media Gallery"

class EmailService:
    """
    An email service that can operate in two modes:
    - 'console': Prints email content to the console. For local development.
    - 'ses': Sends emails using AWS SES. For production.

    The mode is determined by the `EMAIL_SERVICE_TYPE` environment variable.
    """
    def __init__(self, mode: Optional[str] = None):
        self.mode = mode or EMAIL_SERVICE_TYPE
        self.sender_email = SENDER_EMAIL_ADDRESS

        logger.info(f"Initializing EmailService in '{self.mode}' mode.")

        if self.mode == "console":
            self.client = ConsoleEmailClient(sender_email=self.sender_email)
        elif self.mode == "ses":
            self.client = self._get_ses_client()
        else:
            raise ValueError(f"Invalid EMAIL_SERVICE_TYPE: '{self.mode}'. Must be 'console' or 'ses'.")

    def _get_ses_client(self):
        """Initializes and returns the AWS SES client."""
        import boto3
        from botocore.exceptions import ClientError, NoCredentialsError

        if not all([AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, self.sender_email]):
            logger.error("SES mode is active, but required AWS credentials or sender email are missing.")
            raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Email service is not configured.")

        try:
            client = boto3.client(
                'ses',
                region_name=AWS_SES_REGION,
                aws_access_key_id=AWS_ACCESS_KEY_ID,
                aws_secret_access_key=AWS_SECRET_ACCESS_KEY
            )
            logger.info(f"AWS SES client initialized for region '{AWS_SES_REGION}'.")
            return client
        except (NoCredentialsError, ClientError) as e:
            logger.error(f"Failed to initialize AWS SES client: {e}")
            raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Could not connect to email service.")

    def send_email(self, to_address: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        """Sends an email using the configured client. Failures are logged, never raised."""
        if self.mode == 'console':
            return self.client.send_email(to_address, subject, html_body, text_body)

        from botocore.exceptions import BotoCoreError, ClientError

        message_body = {}
        if html_body:
            message_body['Html'] = {'Data': html_body, 'Charset': 'UTF-8'}
        if text_body:
            message_body['Text'] = {'Data': text_body, 'Charset': 'UTF-8'}
        if not message_body:
            raise ValueError("HTML or text body must be provided.")

        try:
            response = self.client.send_email(
                Source=self.sender_email,
                Destination={'ToAddresses': [to_address]},
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': message_body
                }
            )
            logger.info(f"Email sent successfully to {to_address} via SES. Message ID: {response.get('MessageId')}")
            return True
        except ClientError as e:
            logger.error(f"Failed to send email to {to_address} via SES: {e.response['Error'].get('Message')}")
            return False
        except BotoCoreError as e:
            logger.error(f"An unexpected error occurred sending email to {to_address}: {e}")
            return False

    def get_otp_email_template(self, name: str, otp: str) -> dict:
        """Generates the content for the email verification code."""
        subject = f"Verify Your Email - {APP_NAME}"
        html_body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2 style="color: #333;">{APP_NAME} Verification</h2>
          <p>Hi {name},</p>
          <p>Your verification code is:</p>
          <h1 style="color: #007bff; font-size: 48px; text-align: center; letter-spacing: 8px;">{otp}</h1>
          <p>This code will expire in {OTP_EXPIRE_MINUTES} minutes.</p>
          <p>If you didn't request this, please ignore this email.</p>
        </div>
        """
        text_body = (
            f"Hi {name},\n\nYour {APP_NAME} verification code is {otp}.\n"
            f"This code will expire in {OTP_EXPIRE_MINUTES} minutes.\n\n"
            "If you didn't request this, please ignore this email."
        )
        return {"subject": subject, "html_body": html_body, "text_body": text_body}

    def get_password_reset_email_template(self, name: str, reset_token: str) -> dict:
        """Generates the content for a password reset email."""
        reset_url = f"{FRONTEND_URL}/reset-password/{reset_token}"
        expiry_hours = RESET_TOKEN_EXPIRE_MINUTES // 60
        expiry = f"{expiry_hours} hour{'s' if expiry_hours != 1 else ''}" if expiry_hours else f"{RESET_TOKEN_EXPIRE_MINUTES} minutes"
        subject = "Password Reset Request"
        html_body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2 style="color: #333;">Password Reset Request</h2>
          <p>Hi {name}, you requested a password reset for your {APP_NAME} account.</p>
          <p>Click the link below to reset your password:</p>
          <a href="{reset_url}" style="display: inline-block; background: #007bff; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px;">Reset Password</a>
          <p>This link will expire in {expiry}.</p>
          <p>If you didn't request this, please ignore this email.</p>
        </div>
        """
        text_body = (
            f"Hi {name},\n\nReset your {APP_NAME} password here: {reset_url}\n"
            f"This link will expire in {expiry}.\n\n"
            "If you didn't request this, please ignore this email."
        )
        return {"subject": subject, "html_body": html_body, "text_body": text_body}

# --- Helper Class for Console Mode ---
class ConsoleEmailClient:
    """A mock email client that prints emails to the console."""
    def __init__(self, sender_email: str):
        self.sender_email = sender_email

    def send_email(self, to_address: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        print("\n" + "="*80)
        print("--- [Email Sent (Console Mode)] ---")
        print(f"  From: {self.sender_email}")
        print(f"  To: {to_address}")
        print(f"  Subject: {subject}")
        print("--- [Body] ---")
        print((text_body or html_body).strip())
        print("="*80 + "\n")
        logger.info(f"Printed email to console for recipient: {to_address}")
        return True # Simulate successful sending
