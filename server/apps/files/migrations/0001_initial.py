import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Folder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('local_path', models.CharField(help_text='Logical local path: ./uploads/{user_id}/{name}', max_length=500)),
                ('remote_path', models.CharField(help_text='Remote directory: /users/{user_id}/{name}', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('modified_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='folders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Folder',
                'verbose_name_plural': 'Folders',
                'ordering': ['-created_at'],
                'constraints': [models.UniqueConstraint(fields=('user', 'name'), name='folders_user_name_unique')],
            },
        ),
        migrations.CreateModel(
            name='File',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stored_filename', models.CharField(max_length=255)),
                ('original_filename', models.CharField(max_length=255)),
                ('local_path', models.CharField(blank=True, default='', max_length=500)),
                ('size_bytes', models.BigIntegerField(help_text='File size in bytes')),
                ('content_type', models.CharField(default='application/octet-stream', max_length=255)),
                ('remote_path', models.CharField(help_text='Path on the remote store: /users/{user_id}/.../name', max_length=500)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('modified_at', models.DateTimeField(auto_now=True)),
                ('folder', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='files', to='files.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File',
                'verbose_name_plural': 'Files',
                'ordering': ['-uploaded_at'],
                'indexes': [
                    models.Index(fields=['user', '-uploaded_at'], name='files_user_recent_idx'),
                    models.Index(fields=['remote_path'], name='files_remote_path_idx'),
                ],
                'constraints': [models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='files_size_bytes_non_negative')],
            },
        ),
    ]
