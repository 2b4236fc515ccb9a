"""Department Chat package.

Department-routed support chat for the HR platform: a conversation is opened
towards a department, claimed by one of its members and then runs as a private
thread. Organized by feature modules (chats, directory, attachments) with a thin
Flask controller layer and service/repository layers.
"""
