"""
Theurgy - Command implementations for the Memora CLI.

Each module corresponds to a top-level CLI group:
- profile: Create, update, delete and show user profiles
- blog:    Numbered blogs with burn and mint messages
- forum:   Posts and burn/mint replies
- project: Projects and the burn leaderboard
- chat:    Chat groups and minting messages
- burn:    Plain burns and per-user burn statistics
- mint:    Mint the current reward against a memo
- transfer: Native and memo-token transfers
- stats:   Aggregate statistics over blogs, posts, projects and chat groups
- history: Read decoded memo history of a blog, post, project or chat group
"""
