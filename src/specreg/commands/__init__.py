"""Built-in CLI commands for specreg.

* :mod:`~specreg.commands.inspect` -- list, find and explain operations;
  compile, show, sample and validate schemas.
* :mod:`~specreg.commands.invoke` -- call an operation over HTTP.
* :mod:`~specreg.commands.common` -- document loading and error reporting
  shared by both.

Each command is a plain callback registered on the root app in
:mod:`specreg.app`.
"""
