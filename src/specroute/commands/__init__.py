"""Built-in CLI sub-commands for specroute.

* :mod:`~specroute.commands.compile` -- compile a document into the JSON IR.
* :mod:`~specroute.commands.inspect` -- view declarations, operations, emit
  order, and security schemes of a document.

``compile`` is a plain callback registered directly on the root app;
``inspect`` is a :class:`typer.Typer` sub-application.
"""
