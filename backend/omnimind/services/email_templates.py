"""HTML email templates. Placeholders use {{ name }} syntax."""

_BASE_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .button { display: inline-block; padding: 12px 24px; background: #3b82f6; color: white; text-decoration: none; border-radius: 6px; font-weight: bold; }
    .footer { text-align: center; margin-top: 25px; color: #6b7280; font-size: 14px; }
"""

WELCOME = {
    "subject": "Welcome to OmniMind!",
    "html": """<!DOCTYPE html>
<html>
<head>
  <style>""" + _BASE_STYLE + """
    .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 30px; color: white; text-align: center; border-radius: 10px 10px 0 0; }
    .content { padding: 30px; background: #f9fafb; border-radius: 0 0 10px 10px; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Welcome to OmniMind!</h1>
      <p>Your AI-powered productivity assistant</p>
    </div>
    <div class="content">
      <h2>Hello {{ name }},</h2>
      <p>Thank you for joining OmniMind! We're excited to help you boost your productivity with AI-powered assistance.</p>
      <h3>Getting Started:</h3>
      <ol>
        <li><strong>Connect your accounts:</strong> Link your email and calendar for automatic task extraction</li>
        <li><strong>Try the Chrome extension:</strong> Extract tasks directly from Gmail</li>
        <li><strong>Set up your first project:</strong> Organize your work in one place</li>
        <li><strong>Enable notifications:</strong> Stay on top of important deadlines</li>
      </ol>
      <div style="text-align: center; margin: 30px 0;">
        <a href="{{ dashboard_url }}" class="button">Go to Dashboard</a>
      </div>
      <p>Need help? Check out our <a href="{{ help_url }}">documentation</a> or reply to this email.</p>
      <p>Best regards,<br>The OmniMind Team</p>
    </div>
    <div class="footer">
      <p><a href="{{ unsubscribe_url }}">Unsubscribe</a> | <a href="{{ privacy_url }}">Privacy Policy</a></p>
    </div>
  </div>
</body>
</html>
""",
}

TASK_REMINDER = {
    "subject": "Task Reminder: {{ task_title }}",
    "html": """<!DOCTYPE html>
<html>
<head>
  <style>""" + _BASE_STYLE + """
    .header { background: linear-gradient(135deg, #f59e0b 0%, #d97706 100%); padding: 20px; color: white; text-align: center; border-radius: 10px 10px 0 0; }
    .content { padding: 25px; background: #fff7ed; border-radius: 0 0 10px 10px; }
    .task-card { background: white; border-left: 4px solid #f59e0b; padding: 15px; margin: 15px 0; border-radius: 6px; }
    .priority-high { border-left-color: #ef4444; }
    .priority-medium { border-left-color: #f59e0b; }
    .priority-low { border-left-color: #10b981; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h2>⏰ Task Reminder</h2>
    </div>
    <div class="content">
      <h3>Hello {{ name }},</h3>
      <p>This is a reminder for your upcoming task:</p>
      <div class="task-card priority-{{ task_priority }}">
        <h4 style="margin: 0 0 10px 0;">{{ task_title }}</h4>
        {{ task_description_block }}
        <div style="font-size: 14px;">
          <span><strong>Due:</strong> {{ due_date }}</span>
          <span><strong>Priority:</strong> {{ task_priority }}</span>
        </div>
        {{ project_block }}
      </div>
      <div style="text-align: center; margin: 25px 0;">
        <a href="{{ task_url }}" class="button">View Task</a>
      </div>
      <p>Need to reschedule? You can update the due date in the dashboard.</p>
      <p>Best regards,<br>The OmniMind Team</p>
    </div>
    <div class="footer">
      <p>Manage your notification settings <a href="{{ settings_url }}">here</a></p>
    </div>
  </div>
</body>
</html>
""",
}

DAILY_DIGEST = {
    "subject": "Your Daily Digest - {{ date }}",
    "html": """<!DOCTYPE html>
<html>
<head>
  <style>""" + _BASE_STYLE + """
    .header { background: linear-gradient(135deg, #3b82f6 0%, #1d4ed8 100%); padding: 25px; color: white; text-align: center; border-radius: 10px 10px 0 0; }
    .content { padding: 25px; background: #f0f9ff; border-radius: 0 0 10px 10px; }
    .section { background: white; padding: 20px; margin: 15px 0; border-radius: 8px; }
    .task-item { padding: 10px; border-bottom: 1px solid #e5e7eb; }
    .priority-dot { display: inline-block; width: 8px; height: 8px; border-radius: 50%; margin-right: 8px; }
    .priority-high { background-color: #ef4444; }
    .priority-medium { background-color: #f59e0b; }
    .priority-low { background-color: #10b981; }
    .stat-card { background: white; padding: 15px; border-radius: 8px; text-align: center; display: inline-block; width: 40%; margin: 5px; }
    .stat-number { font-size: 24px; font-weight: bold; }
    .stat-label { font-size: 14px; color: #6b7280; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h2>📊 Your Daily Digest</h2>
      <p>{{ date }} | {{ day_name }}</p>
    </div>
    <div class="content">
      <h3>Good morning, {{ name }}!</h3>
      <p>Here's your productivity overview for today:</p>
      <div>
        <div class="stat-card"><div class="stat-number">{{ total_tasks }}</div><div class="stat-label">Total Tasks</div></div>
        <div class="stat-card"><div class="stat-number">{{ completed_tasks }}</div><div class="stat-label">Completed</div></div>
        <div class="stat-card"><div class="stat-number">{{ overdue_tasks }}</div><div class="stat-label">Overdue</div></div>
        <div class="stat-card"><div class="stat-number">{{ due_today }}</div><div class="stat-label">Due Today</div></div>
      </div>
      <div class="section">
        <h4>🎯 Today's Priorities</h4>
        {{ priorities_block }}
      </div>
      {{ meetings_block }}
      {{ suggestions_block }}
      <div style="text-align: center; margin: 25px 0;">
        <a href="{{ dashboard_url }}" class="button">Open Dashboard</a>
      </div>
    </div>
    <div class="footer">
      <p>This email was sent by OmniMind. <a href="{{ settings_url }}">Adjust your email preferences</a></p>
    </div>
  </div>
</body>
</html>
""",
}

PASSWORD_RESET = {
    "subject": "Reset Your OmniMind Password",
    "html": """<!DOCTYPE html>
<html>
<head>
  <style>""" + _BASE_STYLE + """
    .header { background: linear-gradient(135deg, #ef4444 0%, #dc2626 100%); padding: 25px; color: white; text-align: center; border-radius: 10px 10px 0 0; }
    .content { padding: 25px; background: #fef2f2; border-radius: 0 0 10px 10px; }
    .code { display: inline-block; padding: 15px 25px; background: white; border: 2px dashed #ef4444; font-size: 24px; font-weight: bold; letter-spacing: 5px; margin: 20px 0; }
    .warning { background: #fef3c7; border: 1px solid #f59e0b; padding: 15px; border-radius: 6px; margin: 20px 0; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h2>🔐 Password Reset Request</h2>
    </div>
    <div class="content">
      <h3>Hello,</h3>
      <p>We received a request to reset your OmniMind password. If you didn't make this request, you can safely ignore this email.</p>
      <div style="text-align: center; margin: 25px 0;">
        <div class="code">{{ reset_code }}</div>
        <p style="font-size: 14px; color: #6b7280;">This link will expire in {{ expires_minutes }} minutes</p>
      </div>
      <div class="warning">
        <strong>⚠️ Security Notice:</strong>
        <ul style="margin: 10px 0; padding-left: 20px;">
          <li>Never share this link with anyone</li>
          <li>OmniMind will never ask for your password</li>
          <li>The link can only be used once</li>
        </ul>
      </div>
      <div style="text-align: center; margin: 25px 0;">
        <a href="{{ reset_url }}" class="button">Reset Password</a>
      </div>
      <p>Or copy and paste this link in your browser:</p>
      <p style="word-break: break-all; background: #f3f4f6; padding: 10px; border-radius: 4px; font-size: 14px;">{{ reset_url }}</p>
      <p>Best regards,<br>The OmniMind Security Team</p>
    </div>
    <div class="footer">
      <p>This email was sent to {{ email }}.</p>
    </div>
  </div>
</body>
</html>
""",
}

CUSTOM_NOTIFICATION = {
    "subject": "{{ subject }}",
    "html": """<!DOCTYPE html>
<html>
<head>
  <style>""" + _BASE_STYLE + """
    .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 20px; color: white; text-align: center; border-radius: 10px 10px 0 0; }
    .content { padding: 25px; background: #f9fafb; border-radius: 0 0 10px 10px; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h2>📢 OmniMind Notification</h2>
    </div>
    <div class="content">
      {{ content }}
      <div style="margin-top: 25px; padding-top: 25px; border-top: 1px solid #e5e7eb;">
        <p style="text-align: center;">
          <a href="{{ dashboard_url }}" style="color: #3b82f6; text-decoration: none;">Go to Dashboard</a> |
          <a href="{{ settings_url }}" style="color: #3b82f6; text-decoration: none;">Notification Settings</a>
        </p>
      </div>
    </div>
  </div>
</body>
</html>
""",
}

TEMPLATES = {
    "welcome": WELCOME,
    "task_reminder": TASK_REMINDER,
    "daily_digest": DAILY_DIGEST,
    "password_reset": PASSWORD_RESET,
    "custom_notification": CUSTOM_NOTIFICATION,
}
