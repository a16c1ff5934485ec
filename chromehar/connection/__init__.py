from chromehar.connection.session import CDPSession, CDPTarget, execute_command

__all__ = ['CDPSession', 'CDPTarget', 'execute_command']
