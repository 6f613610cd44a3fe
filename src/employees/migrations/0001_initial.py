import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Employee',
            fields=[
                ('is_deleted', models.BooleanField(db_index=True, default=False, help_text='Indicates if this record is soft-deleted')),
                ('deleted_at', models.DateTimeField(blank=True, help_text='Timestamp when record was deleted', null=True)),
                ('deleted_by', models.CharField(blank=True, help_text='Admin user or tool that deleted this record', max_length=150, null=True)),
                ('deletion_reason', models.TextField(blank=True, help_text='Optional reason for deletion', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last updated')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Internal UUID for database relations', primary_key=True, serialize=False)),
                ('id_badge_number', models.CharField(db_index=True, help_text='Badge number shared with survey responses (e.g., MTI240266)', max_length=50)),
                ('name', models.CharField(help_text="Employee's full name", max_length=200)),
                ('department', models.CharField(help_text='Department as recorded by HR', max_length=200)),
                ('level', models.CharField(choices=[('Managerial', 'Managerial'), ('Non Managerial', 'Non Managerial')], db_index=True, default='Non Managerial', help_text='Managerial or Non Managerial', max_length=20)),
                ('status', models.CharField(choices=[('Submitted', 'Submitted'), ('Not Submitted', 'Not Submitted')], db_index=True, default='Not Submitted', help_text='Survey submission status', max_length=20)),
                ('email', models.EmailField(blank=True, help_text='Email address (optional)', max_length=254, null=True)),
            ],
            options={
                'verbose_name': 'Employee',
                'verbose_name_plural': 'Employees',
                'db_table': 'employees',
                'ordering': ['-created_at'],
            },
        ),
    ]
