"""Built-in CLI sub-commands for loginflow.

* :mod:`~loginflow.commands.init` -- create a profile for a client app.
* :mod:`~loginflow.commands.login` -- run the browser login and store the
  token.
* :mod:`~loginflow.commands.token` -- inspect or purge the stored token.
* :mod:`~loginflow.commands.config` -- view and modify settings and
  profiles.

Multi-command groups export a :class:`typer.Typer` sub-application;
single commands export a plain callback registered on the root app.
"""
