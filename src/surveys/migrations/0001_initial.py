import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('employees', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='SurveyResponse',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('id_badge_number', models.CharField(db_index=True, help_text='Badge number typed by the employee', max_length=50)),
                ('name', models.CharField(max_length=200)),
                ('department', models.CharField(max_length=200)),
                ('level', models.CharField(blank=True, choices=[('Managerial', 'Managerial'), ('Non Managerial', 'Non Managerial')], max_length=20, null=True)),
                ('answers', models.JSONField(blank=True, default=dict, help_text='Flat scores/feedback: {hr_documentcontrol_question1: 4, ...}')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('employee', models.ForeignKey(blank=True, db_constraint=False, help_text='Linked employee (repaired from badge number)', null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='survey_responses', to='employees.employee')),
            ],
            options={
                'verbose_name': 'Survey Response',
                'verbose_name_plural': 'Survey Responses',
                'db_table': 'survey_responses',
                'ordering': ['-created_at'],
            },
        ),
    ]
