"""
Schedule App - Daily Extraction Trigger

Responsibilities:
- Hold the job templates and timed triggers of the extractor's schedule
- Materialize them into fully substituted commands bound to cron schedules
- Reject unbound placeholders, ambiguous schedules and bad template references
- Install, update or clear the generated block in the system crontab

Input:
- config/schedule.yml (templates, jobs, settings, env)

Output:
- Crontab block: "1 0 * * * /bin/bash -l -c 'cd /swsd-data-extractor && ... rake extract_data ...'"
"""
