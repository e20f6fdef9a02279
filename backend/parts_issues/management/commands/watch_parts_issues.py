import os
import time
from collections import Counter

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from backend.parts_issues.client import NetworkError, PartsIssueClient
from backend.parts_issues.exceptions import PartsIssueError
from backend.parts_issues.poller import PartsIssuePoller


class Command(BaseCommand):
    help = 'Poll the parts-issue API and print each request with its bucket and badges'

    def add_arguments(self, parser):
        parser.add_argument('--base-url', default=os.environ.get('PARTS_API_URL', 'http://127.0.0.1:8000/api/v1'))
        parser.add_argument('--username', default=os.environ.get('PARTS_API_USERNAME'))
        parser.add_argument('--password', default=os.environ.get('PARTS_API_PASSWORD'))
        parser.add_argument('--interval', type=float, default=settings.PARTS_ISSUE_POLL_INTERVAL)
        parser.add_argument('--status', help='Only requests in this status (legacy spellings accepted)')
        parser.add_argument('--bucket', choices=['pending', 'approved', 'rejected', 'issued'])
        parser.add_argument('--once', action='store_true', help='Poll a single time and exit')

    def handle(self, *args, **options):
        if not options['username'] or not options['password']:
            raise CommandError('Credentials required: --username/--password or PARTS_API_USERNAME/PARTS_API_PASSWORD')

        client = PartsIssueClient(options['base_url'])
        try:
            client.authenticate(options['username'], options['password'])
        except (NetworkError, PartsIssueError) as e:
            raise CommandError(f'Login failed: {e}')

        filters = {key: options[key] for key in ('status', 'bucket') if options[key]}
        poller = PartsIssuePoller(
            fetch=lambda: client.list_all(**filters),
            on_update=self.show,
            interval=options['interval'],
        )

        if options['once']:
            if not poller.poll_once():
                raise CommandError('Poll failed, see log for details')
            return

        poller.start()
        self.stdout.write(self.style.SUCCESS(f"Watching {options['base_url']} every {options['interval']}s (Ctrl+C to stop)"))
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            poller.stop(timeout=5)

    def show(self, snapshot):
        counts = Counter(entry['projection']['bucket'] for entry in snapshot)
        self.stdout.write(
            f"\n{time.strftime('%H:%M:%S')}  " +
            '  '.join(f"{bucket}: {counts.get(bucket, 0)}" for bucket in ('pending', 'approved', 'rejected', 'issued'))
        )
        for entry in snapshot:
            issue = entry['issue']
            projection = entry['projection']
            badges = ', '.join(projection['badges']) or '-'
            self.stdout.write(
                f"  {issue['issue_number']:<24} {projection['status']:<24} {projection['bucket']:<9} v{issue.get('version')}  [{badges}]"
            )
