from django.core.management.base import BaseCommand, CommandError

from apps.identity.jwt_auth import create_access_token


class Command(BaseCommand):
    help = 'Issues a development access token for a subject id (signed with JWT_SECRET)'

    def add_arguments(self, parser):
        parser.add_argument('subject', help='Subject id that will own the tasks')
        parser.add_argument(
            '--minutes', type=int, default=60,
            help='Token lifetime in minutes (default: 60)',
        )

    def handle(self, *args, **options):
        subject = options['subject'].strip()
        if not subject:
            raise CommandError('Subject id must not be blank')
        if options['minutes'] < 1:
            raise CommandError('--minutes must be at least 1')

        token = create_access_token(subject, expires_minutes=options['minutes'])
        self.stderr.write(self.style.SUCCESS(f'Issued token for {subject} ({options["minutes"]} min)'))
        self.stdout.write(token)
