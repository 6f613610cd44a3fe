import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('contenttypes', '0002_remove_content_type_name'),
    ]

    operations = [
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('actor', models.CharField(default='system', help_text='Admin username or tool that made the change', max_length=150)),
                ('object_id', models.CharField(help_text='ID of the object that was changed', max_length=255)),
                ('action', models.CharField(choices=[('create', 'Created'), ('update', 'Updated'), ('delete', 'Deleted'), ('restore', 'Restored')], help_text='Type of action performed', max_length=10)),
                ('field_name', models.CharField(blank=True, help_text='Field that was changed (for updates)', max_length=100, null=True)),
                ('old_value', models.TextField(blank=True, help_text='Previous value (for updates)', null=True)),
                ('new_value', models.TextField(blank=True, help_text='New value (for updates)', null=True)),
                ('timestamp', models.DateTimeField(auto_now_add=True, help_text='When the change occurred')),
                ('ip_address', models.GenericIPAddressField(blank=True, help_text='IP address of the caller', null=True)),
                ('notes', models.TextField(blank=True, help_text='Additional context or reason for change', null=True)),
                ('content_type', models.ForeignKey(help_text='Type of object that was changed', on_delete=django.db.models.deletion.CASCADE, to='contenttypes.contenttype')),
            ],
            options={
                'verbose_name': 'Audit Log',
                'verbose_name_plural': 'Audit Logs',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['content_type', 'object_id'], name='audit_audit_content_e0a6a1_idx'),
                    models.Index(fields=['actor', '-timestamp'], name='audit_audit_actor_5b1f0e_idx'),
                    models.Index(fields=['action', '-timestamp'], name='audit_audit_action_9c2d47_idx'),
                ],
            },
        ),
    ]
