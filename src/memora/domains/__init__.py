"""
Domains - Operation builders and readers for each memo-token program.

One module per program: profile, blog, forum, project, chat, burn and
mint, plus native and token transfers.
Builders return an ``Operation`` for the ``TransactionPipeline``; readers
return typed entities.
"""
