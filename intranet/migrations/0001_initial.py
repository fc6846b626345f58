from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Record',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('collection', models.CharField(db_index=True, max_length=64)),
                ('doc_id', models.CharField(max_length=255)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['collection', 'doc_id'],
                'indexes': [models.Index(fields=['collection', '-updated_at'], name='record_collection_updated_idx')],
                'constraints': [models.UniqueConstraint(fields=('collection', 'doc_id'), name='unique_document_per_collection')],
            },
        ),
    ]
